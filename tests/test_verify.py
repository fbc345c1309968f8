"""Public certificate verification tests."""

import pytest
import pytest_asyncio
from httpx import AsyncClient

from parliament.core.config import get_settings
from parliament.models import EnvelopeStatus, PartyStatus
from parliament.services.hashing import sha256_hex
from parliament.services.verification import (
    REASON_HASH_MISMATCH,
    REASON_NO_DOCUMENT,
    REASON_NOT_COMPLETED,
    REASON_PROVIDED_HASH,
)

pytestmark = pytest.mark.asyncio

BUCKET = get_settings().minute_book_bucket

URL = "/functions/v1/verify-certificate"


@pytest_asyncio.fixture
async def completed_envelope(seed, temp_storage, sample_pdf):
    entity = await seed.entity()
    record = await seed.record(entity)
    signed_path = f"holdings/Resolutions/{record.id}-signed.pdf"
    await temp_storage.upload(BUCKET, signed_path, sample_pdf)
    pdf_hash = sha256_hex(sample_pdf)

    envelope = await seed.envelope(
        entity,
        record,
        status=EnvelopeStatus.COMPLETED,
        meta={
            "signed_document_path": signed_path,
            "pdf_hash": pdf_hash,
            "certificate": {
                "certificate_version": 1,
                "envelope_id": "placeholder",
                "bucket": BUCKET,
                "signed_document_path": signed_path,
                "pdf_hash": pdf_hash,
            },
            "certification": {"hash": "c" * 64, "path": "x-certified.pdf"},
        },
    )
    await seed.party(envelope, "alex@oasisintl.com", "Alex", status=PartyStatus.SIGNED)
    return envelope


class TestVerifyCertificate:
    async def test_valid_certificate(self, client: AsyncClient, completed_envelope, sample_pdf):
        response = await client.get(URL, params={"envelope_id": completed_envelope.id})

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["reason"] is None
        assert data["status"] == "completed"
        assert data["computed_hash"] == sha256_hex(sample_pdf)
        assert data["hash_match"] is True
        assert data["audit_trail_valid"] is True
        assert [p["email"] for p in data["parties"]] == ["alex@oasisintl.com"]

    async def test_tampered_document(
        self, client: AsyncClient, completed_envelope, temp_storage
    ):
        path = completed_envelope.meta["signed_document_path"]
        await temp_storage.upload(BUCKET, path, b"%PDF-1.4 tampered")

        data = (await client.get(URL, params={"envelope_id": completed_envelope.id})).json()

        assert data["valid"] is False
        assert data["hash_match"] is False
        assert data["reason"] == REASON_HASH_MISMATCH

    async def test_presented_hash_of_certified_artifact(
        self, client: AsyncClient, completed_envelope
    ):
        data = (
            await client.get(URL, params={"envelope_id": completed_envelope.id, "hash": "C" * 64})
        ).json()
        assert data["valid"] is True

    async def test_presented_hash_unknown(self, client: AsyncClient, completed_envelope):
        data = (
            await client.get(URL, params={"envelope_id": completed_envelope.id, "hash": "d" * 64})
        ).json()

        assert data["valid"] is False
        assert data["reason"] == REASON_PROVIDED_HASH

    async def test_pending_envelope(self, client: AsyncClient, seed):
        entity = await seed.entity()
        record = await seed.record(entity)
        envelope = await seed.envelope(
            entity, record, meta={"signed_document_path": "holdings/Resolutions/nothing.pdf"}
        )

        data = (await client.get(URL, params={"envelope_id": envelope.id})).json()

        assert data["valid"] is False
        assert data["reason"] == REASON_NOT_COMPLETED
        assert data["computed_hash"] is None
        assert data["certificate"]["envelope_id"] == envelope.id

    async def test_completed_without_document(self, client: AsyncClient, seed):
        entity = await seed.entity()
        record = await seed.record(entity)
        envelope = await seed.envelope(entity, record, status=EnvelopeStatus.COMPLETED)

        data = (await client.get(URL, params={"envelope_id": envelope.id})).json()

        assert data["valid"] is False
        assert data["reason"] == REASON_NO_DOCUMENT

    async def test_missing_envelope_id(self, client: AsyncClient):
        response = await client.get(URL)
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "Missing envelope_id"}

    async def test_unknown_envelope(self, client: AsyncClient):
        response = await client.get(URL, params={"envelope_id": "nope"})
        assert response.status_code == 404
