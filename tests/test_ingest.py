"""Minute Book ingest tests."""

import pytest
from httpx import AsyncClient

from parliament.core.config import get_settings
from parliament.models import MinuteBookEntry, SignatureEventType
from parliament.services.audit import audit_service
from parliament.services.hashing import sha256_hex

pytestmark = pytest.mark.asyncio

BUCKET = get_settings().minute_book_bucket

URL = "/functions/v1/odp-pdf-ingest"

PATH = "holdings/Resolutions/rec-1-signed.pdf"


class TestIngest:
    async def test_requires_service_key(self, client: AsyncClient):
        response = await client.post(URL, json={"entity_slug": "holdings", "source_path": PATH})
        assert response.status_code == 401

    async def test_slug_and_path_required(self, client: AsyncClient, service_headers):
        response = await client.post(URL, json={"entity_slug": "holdings"}, headers=service_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "entity_slug and source_path are required"

    async def test_creates_entry(
        self, client: AsyncClient, seed, temp_storage, sample_pdf, service_headers, test_db
    ):
        entity = await seed.entity()
        await temp_storage.upload(BUCKET, PATH, sample_pdf)

        response = await client.post(
            URL,
            json={
                "entity_slug": "holdings",
                "source_path": PATH,
                "title": "Approval of Annual Budget",
                "pdf_hash": sha256_hex(sample_pdf),
            },
            headers=service_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["reused"] is False
        assert data["source_bucket"] == BUCKET
        assert data["file_hash"] == sha256_hex(sample_pdf)
        assert data["file_size"] == len(sample_pdf)
        assert data["hash_mismatch"] is False

        entry = await test_db.get(MinuteBookEntry, data["entry_id"])
        assert entry.entity_id == entity.id
        assert entry.document_class == "resolution"
        assert entry.section_name == "Resolutions"

    async def test_second_ingest_reuses_entry(
        self, client: AsyncClient, seed, temp_storage, sample_pdf, service_headers
    ):
        await seed.entity()
        await temp_storage.upload(BUCKET, PATH, sample_pdf)
        payload = {"entity_slug": "holdings", "source_path": PATH}

        first = await client.post(URL, json=payload, headers=service_headers)
        second = await client.post(URL, json=payload, headers=service_headers)

        assert second.json()["reused"] is True
        assert second.json()["entry_id"] == first.json()["entry_id"]

    async def test_hash_mismatch_flagged(
        self, client: AsyncClient, seed, temp_storage, sample_pdf, service_headers
    ):
        await seed.entity()
        await temp_storage.upload(BUCKET, PATH, sample_pdf)

        response = await client.post(
            URL,
            json={"entity_slug": "holdings", "source_path": PATH, "pdf_hash": "f" * 64},
            headers=service_headers,
        )

        assert response.status_code == 200
        assert response.json()["hash_mismatch"] is True
        assert response.json()["file_hash"] == sha256_hex(sample_pdf)

    async def test_missing_object(self, client: AsyncClient, service_headers, temp_storage):
        response = await client.post(
            URL,
            json={"entity_slug": "holdings", "source_path": "holdings/Resolutions/none.pdf"},
            headers=service_headers,
        )
        assert response.status_code == 404
        assert response.json()["error"] == "OBJECT_NOT_FOUND"

    async def test_envelope_event_and_lane(
        self, client: AsyncClient, seed, temp_storage, sample_pdf, service_headers, test_db
    ):
        entity = await seed.entity()
        record = await seed.record(entity, is_test=True)
        envelope = await seed.envelope(entity, record)
        envelope.is_test = True
        await test_db.commit()
        await temp_storage.upload(BUCKET, PATH, sample_pdf)

        response = await client.post(
            URL,
            json={"entity_slug": "holdings", "source_path": PATH, "envelope_id": envelope.id},
            headers=service_headers,
        )

        entry = await test_db.get(MinuteBookEntry, response.json()["entry_id"])
        assert entry.is_test is True
        assert entry.envelope_id == envelope.id

        events = await audit_service.get_audit_trail(test_db, envelope.id)
        assert [e.event_type for e in events] == [SignatureEventType.INGESTED]
