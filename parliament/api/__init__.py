"""API routes package."""

from fastapi import APIRouter

from parliament.api.envelopes import router as envelopes_router
from parliament.api.minute_book import router as minute_book_router
from parliament.api.signing import router as signing_router
from parliament.api.verification import router as verification_router

api_router = APIRouter()

api_router.include_router(envelopes_router)
api_router.include_router(signing_router)
api_router.include_router(minute_book_router)
api_router.include_router(verification_router)
