"""Certificate rendering tests."""

import fitz  # PyMuPDF
import pytest

from parliament.core.exceptions import CertificateRenderError
from parliament.services.certificate import (
    MAX_CERTIFICATION_PASSES,
    PLACEHOLDER_HASH,
    CertificateRenderer,
    CertificationContext,
    SignatureCertificateContext,
    truncate_middle,
)
from parliament.services.hashing import sha256_hex
from parliament.services.qr import qr_matrix


def verify_url_for(cert_hash: str) -> str:
    return f"https://sign.example.test/verify.html?envelope_id=env-1&hash={cert_hash}"


def last_page_text(pdf_bytes: bytes) -> str:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        return doc[-1].get_text()
    finally:
        doc.close()


@pytest.fixture
def certification_context() -> CertificationContext:
    return CertificationContext(
        envelope_id="env-1",
        title="Approval of Annual Budget",
        entity_id="ent-1",
        entity_name="Oasis International Holdings",
        record_id="rec-1",
        certified_at="2026-01-02T03:04:05.000Z",
    )


class TestTruncateMiddle:
    def test_short_values_unchanged(self):
        assert truncate_middle("abc", 10) == "abc"
        assert truncate_middle(None) == ""

    def test_long_values_elided(self):
        value = "0123456789abcdefghij"
        result = truncate_middle(value, 11)
        assert len(result) == 11
        assert result == "0123...ghij"


class TestQrMatrix:
    def test_matrix_is_square_with_quiet_zone(self):
        matrix = qr_matrix("https://sign.example.test/verify.html?envelope_id=env-1")
        assert len(matrix) == len(matrix[0])
        # Quiet zone rows are light
        assert not any(matrix[0])
        assert not any(matrix[-1])


class TestSignatureCertificate:
    def test_appends_one_page(self, sample_pdf):
        renderer = CertificateRenderer()
        result = renderer.render_signature_certificate(
            sample_pdf,
            SignatureCertificateContext(
                envelope_id="env-1",
                record_id="rec-1",
                entity_id="ent-1",
                verify_url="https://sign.example.test/verify.html?envelope_id=env-1",
                signed_at="2026-01-02T03:04:05.000Z",
                envelope_status="completed",
                signer_name="Alex Chair",
                signer_email="chair@oasis.test",
                record_title="Approval of Annual Budget",
                entity_name="Oasis International Holdings",
            ),
        )

        doc = fitz.open(stream=result, filetype="pdf")
        try:
            assert doc.page_count == 2
            # The QR is drawn as vector cells, never as an embedded image
            assert doc[-1].get_images() == []
        finally:
            doc.close()

        text = last_page_text(result)
        assert "Signature Certificate" in text
        assert "Scan to verify" in text
        assert "chair@oasis.test" in text
        assert "Technical footprint" not in text

    def test_unreadable_base_document(self):
        renderer = CertificateRenderer()
        with pytest.raises(CertificateRenderError) as exc_info:
            renderer.render_signature_certificate(
                b"plainly not a pdf",
                SignatureCertificateContext(
                    envelope_id="env-1",
                    record_id="rec-1",
                    entity_id="ent-1",
                    verify_url="https://sign.example.test/verify.html",
                    signed_at="",
                    envelope_status="completed",
                    signer_name="A",
                ),
            )
        assert exc_info.value.error == "BASE_DOCUMENT_UNREADABLE"


class TestCertifiedArtifact:
    def test_fixed_point_reached_with_stable_hasher(self, sample_pdf, certification_context):
        # A hasher that ignores content converges after one corrective pass
        renderer = CertificateRenderer(hasher=lambda data: "a" * 64)
        result = renderer.render_certified(sample_pdf, certification_context, verify_url_for)

        assert result.passes == 2
        assert result.stable
        assert result.embedded_hash == result.sha256 == "a" * 64
        assert result.verify_url == verify_url_for("a" * 64)
        assert "a" * 64 in last_page_text(result.content)

    def test_pass_count_is_bounded(self, sample_pdf, certification_context):
        counter = iter(range(1, 100))
        renderer = CertificateRenderer(hasher=lambda data: f"{next(counter):064d}")
        result = renderer.render_certified(sample_pdf, certification_context, verify_url_for)

        assert result.passes == MAX_CERTIFICATION_PASSES
        assert not result.stable
        # The last computed hash is accepted
        assert result.sha256 == f"{3:064d}"
        assert result.embedded_hash == f"{2:064d}"

    def test_real_hash_describes_final_bytes(self, sample_pdf, certification_context):
        renderer = CertificateRenderer()
        result = renderer.render_certified(sample_pdf, certification_context, verify_url_for)

        assert 1 < result.passes <= MAX_CERTIFICATION_PASSES
        assert result.sha256 == sha256_hex(result.content)
        assert result.verify_url.endswith(f"&hash={result.sha256}")
        assert result.embedded_hash != PLACEHOLDER_HASH
        assert result.embedded_hash in last_page_text(result.content)
        assert result.stable == (result.embedded_hash == result.sha256)
