"""Pytest configuration and fixtures."""

import io
from pathlib import Path
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from parliament.core.config import get_settings
from parliament.main import app
from parliament.models import (
    Entity,
    EnvelopeStatus,
    GovernanceRecord,
    PartyStatus,
    SignatureEnvelope,
    SignatureParty,
    get_db,
)
from parliament.models.base import Base, utc_now
from parliament.services.downstream import get_downstream_client
from parliament.services.storage import StorageService, storage_service

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BUCKET = get_settings().minute_book_bucket


class RecordingDownstream:
    """Stands in for the sibling ingest/certify functions."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.ingested: list[dict[str, Any]] = []
        self.certified: list[dict[str, Any]] = []

    async def ingest(self, payload: dict[str, Any]) -> bool:
        self.ingested.append(payload)
        return self.succeed

    async def certify(self, envelope_id: str, force_regen: bool = False) -> bool:
        self.certified.append({"envelope_id": envelope_id, "force_regen": force_regen})
        return self.succeed


def make_pdf(text: str = "Board Resolution") -> bytes:
    """Build a one-page PDF the way a drafting tool would."""
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfgen import canvas

    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    c.drawString(100, 700, text)
    c.drawString(100, 650, "RESOLVED, that the Corporation approves the matter.")
    c.drawString(100, 600, "Signature: ____________________")
    c.save()
    return buffer.getvalue()


class Seeder:
    """Inserts entities, records, envelopes and parties for a test."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def entity(self, slug: str = "holdings", name: str = "Oasis International Holdings") -> Entity:
        entity = Entity(slug=slug, name=name)
        self.db.add(entity)
        await self.db.commit()
        return entity

    async def record(
        self,
        entity: Entity,
        title: str = "Approval of Annual Budget",
        is_test: bool = False,
    ) -> GovernanceRecord:
        record = GovernanceRecord(
            entity_id=entity.id,
            title=title,
            body="RESOLVED, that the annual budget is approved.",
            is_test=is_test,
        )
        self.db.add(record)
        await self.db.commit()
        return record

    async def envelope(
        self,
        entity: Entity,
        record: GovernanceRecord,
        storage_path: str | None = None,
        status: EnvelopeStatus = EnvelopeStatus.PENDING,
        meta: dict | None = None,
    ) -> SignatureEnvelope:
        envelope = SignatureEnvelope(
            entity_id=entity.id,
            record_id=record.id,
            title=record.title,
            status=status,
            storage_path=storage_path,
            meta=meta,
        )
        self.db.add(envelope)
        await self.db.commit()
        return envelope

    async def party(
        self,
        envelope: SignatureEnvelope,
        email: str,
        name: str,
        token: str | None = None,
        status: PartyStatus = PartyStatus.PENDING,
        signing_order: int = 1,
    ) -> SignatureParty:
        party = SignatureParty(
            envelope_id=envelope.id,
            email=email,
            display_name=name,
            role="director",
            signing_order=signing_order,
            status=status,
            party_token=token,
            signed_at=utc_now() if status == PartyStatus.SIGNED else None,
        )
        self.db.add(party)
        await self.db.commit()
        return party


@pytest_asyncio.fixture
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    # One shared connection, otherwise every checkout sees a fresh :memory: database
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(engine, expire_on_commit=False)

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def temp_storage(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> StorageService:
    """Point the shared storage service at a temporary directory."""
    monkeypatch.setattr(storage_service, "root", tmp_path / "storage")
    return storage_service


@pytest.fixture
def downstream() -> RecordingDownstream:
    return RecordingDownstream()


@pytest_asyncio.fixture
async def client(
    test_db: AsyncSession,
    temp_storage: StorageService,
    downstream: RecordingDownstream,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_downstream_client] = lambda: downstream

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def seed(test_db: AsyncSession) -> Seeder:
    return Seeder(test_db)


@pytest.fixture
def sample_pdf() -> bytes:
    return make_pdf()


@pytest.fixture
def service_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {get_settings().service_role_key}"}
