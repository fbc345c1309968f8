"""Certificate page rendering for signed and certified Minute Book documents."""

from dataclasses import dataclass
from typing import Callable

import fitz  # PyMuPDF
from qrcode.exceptions import DataOverflowError

from parliament.core.exceptions import CertificateRenderError
from parliament.core.logger import get_logger
from parliament.services.hashing import sha256_hex
from parliament.services.qr import draw_qr

logger = get_logger(__name__)

PLACEHOLDER_HASH = "0" * 64
MAX_CERTIFICATION_PASSES = 3

# Colours
HEADER_BG = (0.04, 0.08, 0.12)
ACCENT = (0.11, 0.77, 0.55)
TEXT_DARK = (0.16, 0.18, 0.22)
TEXT_MUTED = (0.45, 0.48, 0.55)
HEADER_SUBTLE = (0.8, 0.84, 0.9)
HEADER_RIGHT = (0.7, 0.75, 0.82)
PLATE_BORDER = (0.9, 0.9, 0.9)
GOLD = (0.95, 0.78, 0.33)
INK = (0.15, 0.17, 0.22)
LABEL = (0.50, 0.52, 0.60)

FONT = "helv"
FONT_BOLD = "hebo"


def truncate_middle(value, max_length: int = 34) -> str:
    """Shorten ``value`` to ``max_length`` characters by eliding its middle."""
    text = "" if value is None else str(value)
    if len(text) <= max_length:
        return text
    left = -(-(max_length - 3) // 2)
    right = (max_length - 3) // 2
    return f"{text[:left]}...{text[len(text) - right:]}"


@dataclass
class SignatureCertificateContext:
    """Everything printed on a signature certificate page."""

    envelope_id: str
    record_id: str
    entity_id: str
    verify_url: str
    signed_at: str
    envelope_status: str
    signer_name: str
    signer_email: str | None = None
    signer_role: str | None = None
    record_title: str | None = None
    record_created_at: str | None = None
    entity_name: str | None = None
    entity_slug: str | None = None
    client_ip: str | None = None
    user_agent: str | None = None
    wet_signature_png: bytes | None = None


@dataclass
class CertificationContext:
    """Header data for a certification page."""

    envelope_id: str
    title: str
    entity_id: str
    entity_name: str | None
    record_id: str
    certified_at: str
    is_test: bool = False


@dataclass
class CertifiedDocument:
    """Outcome of the certification fixed-point loop."""

    content: bytes
    sha256: str
    verify_url: str
    embedded_hash: str
    embedded_verify_url: str
    passes: int

    @property
    def stable(self) -> bool:
        """True when the QR on the page encodes the hash of these exact bytes."""
        return self.embedded_hash == self.sha256


class CertificateRenderer:
    """Append certificate pages to PDF documents."""

    def __init__(self, hasher: Callable[[bytes], str] = sha256_hex):
        self.hasher = hasher

    # --- Signature certificate ---

    def render_signature_certificate(
        self,
        base_pdf: bytes,
        context: SignatureCertificateContext,
    ) -> bytes:
        """Return ``base_pdf`` with a signature certificate page appended."""
        doc = self._open(base_pdf)
        try:
            page = self._new_page(doc)
            self._draw_signature_page(page, context)
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

    def _draw_signature_page(
        self, page: fitz.Page, ctx: SignatureCertificateContext
    ) -> None:
        width = page.rect.width
        height = page.rect.height
        margin = 50
        header_height = 70

        page.draw_rect(
            fitz.Rect(0, 0, width, header_height), color=None, fill=HEADER_BG, width=0
        )
        page.insert_text(
            (margin, header_height - 32),
            "Oasis Digital Parliament",
            fontsize=16,
            fontname=FONT_BOLD,
            color=ACCENT,
        )
        page.insert_text(
            (margin, header_height - 14),
            "Signature Certificate",
            fontsize=11,
            fontname=FONT,
            color=HEADER_SUBTLE,
        )
        right_header = "Issued by the Oasis Digital Parliament Ledger"
        right_width = fitz.get_text_length(right_header, fontname=FONT, fontsize=9)
        page.insert_text(
            (width - margin - right_width, header_height - 20),
            right_header,
            fontsize=9,
            fontname=FONT,
            color=HEADER_RIGHT,
        )

        y = header_height + 35
        page.insert_text(
            (margin, y),
            "This page certifies the electronic execution of the following record:",
            fontsize=10,
            fontname=FONT,
            color=TEXT_MUTED,
        )

        title = ctx.record_title or "Corporate Record"
        y += 24
        page.insert_text((margin, y), title, fontsize=13, fontname=FONT_BOLD, color=TEXT_DARK)

        entity_line = ctx.entity_name or "Entity"
        y += 20
        page.insert_text((margin, y), entity_line, fontsize=10, fontname=FONT, color=TEXT_MUTED)

        y += 26
        left_lines = [
            ("Certificate ID", ctx.envelope_id),
            ("Entity", entity_line),
            ("Record ID", ctx.record_id),
            ("Record Title", title),
            ("Signed At (UTC)", ctx.signed_at),
            ("Envelope Status", ctx.envelope_status),
        ]
        right_lines = [
            ("Signer Name", ctx.signer_name),
            ("Signer Email", ctx.signer_email or "N/A"),
            ("Signer Role", ctx.signer_role or "signer"),
            ("Entity ID", ctx.entity_id),
            ("Entity Slug", ctx.entity_slug or "n/a"),
            ("Created At", ctx.record_created_at or "N/A"),
        ]

        left_y = self._draw_columns(page, margin, y, left_lines, 36)
        right_y = self._draw_columns(page, margin + 220, y, right_lines, 28)

        tech_y = max(left_y, right_y) + 18
        if ctx.client_ip or ctx.user_agent:
            page.insert_text(
                (margin, tech_y),
                "Technical footprint",
                fontsize=9,
                fontname=FONT_BOLD,
                color=TEXT_DARK,
            )
            tech_y += 14
            if ctx.client_ip:
                page.insert_text(
                    (margin, tech_y),
                    f"Client IP: {ctx.client_ip}",
                    fontsize=8,
                    fontname=FONT,
                    color=TEXT_MUTED,
                )
                tech_y += 12
            if ctx.user_agent:
                page.insert_text(
                    (margin, tech_y),
                    f"User Agent: {truncate_middle(ctx.user_agent, 68)}",
                    fontsize=8,
                    fontname=FONT,
                    color=TEXT_MUTED,
                )
                tech_y += 12

        page.insert_text(
            (margin, tech_y + 18),
            f"Verify this certificate at: {truncate_middle(ctx.verify_url, 90)}",
            fontsize=8,
            fontname=FONT,
            color=TEXT_MUTED,
        )

        self._draw_qr_plate(page, ctx.verify_url, width, height)

        if ctx.wet_signature_png:
            try:
                page.insert_text(
                    (margin, height - 125),
                    "Wet-Ink Signature (Captured)",
                    fontsize=8,
                    fontname=FONT,
                    color=TEXT_MUTED,
                )
                page.insert_image(
                    fitz.Rect(margin, height - 120, margin + 220, height - 50),
                    stream=ctx.wet_signature_png,
                    keep_proportion=True,
                )
            except (RuntimeError, ValueError) as e:
                logger.error("wet_signature_embed_failed", error=str(e))

    def _draw_columns(
        self,
        page: fitz.Page,
        x: float,
        y: float,
        lines: list[tuple[str, object]],
        max_value_length: int,
    ) -> float:
        for label, value in lines:
            page.insert_text(
                (x, y), f"{label}:", fontsize=9, fontname=FONT_BOLD, color=TEXT_DARK
            )
            page.insert_text(
                (x + 95, y),
                truncate_middle(value, max_value_length),
                fontsize=9,
                fontname=FONT,
                color=TEXT_MUTED,
            )
            y += 16
        return y

    def _draw_qr_plate(
        self, page: fitz.Page, verify_url: str, width: float, height: float
    ) -> None:
        qr_size = 96
        pad = 36
        qr_x = width - pad - qr_size

        # White plate with room for the caption underneath the code
        page.draw_rect(
            fitz.Rect(qr_x - 6, height - pad - qr_size - 22, qr_x + qr_size + 6, height - pad + 6),
            color=PLATE_BORDER,
            fill=(1, 1, 1),
            width=1,
        )

        try:
            draw_qr(
                page,
                verify_url,
                fitz.Rect(qr_x, height - pad - 16 - qr_size, qr_x + qr_size, height - pad - 16),
            )
        except (ValueError, DataOverflowError) as e:
            logger.error("certificate_qr_failed", error=str(e))
            raise CertificateRenderError(details=str(e)) from e

        caption = "Scan to verify"
        caption_width = fitz.get_text_length(caption, fontname=FONT, fontsize=8)
        page.insert_text(
            (qr_x + (qr_size - caption_width) / 2, height - pad - 4),
            caption,
            fontsize=8,
            fontname=FONT,
            color=TEXT_MUTED,
        )

    # --- Certification page (hash-first verification) ---

    def render_certified(
        self,
        source_pdf: bytes,
        context: CertificationContext,
        verify_url_for: Callable[[str], str],
    ) -> CertifiedDocument:
        """
        Append a certification page whose QR encodes the document's own hash.

        Pass A renders a placeholder hash. Pass B re-renders from the source
        with hash(A). When hash(B) differs, a strict pass C renders with
        hash(B) and its hash is accepted as final.
        """
        embedded = PLACEHOLDER_HASH
        content = self._render_certification_pass(source_pdf, context, embedded, verify_url_for(embedded))
        digest = self.hasher(content)
        passes = 1

        while passes < MAX_CERTIFICATION_PASSES and digest != embedded:
            if passes == 2:
                logger.info("certification_strict_pass", envelope_id=context.envelope_id)
            embedded = digest
            content = self._render_certification_pass(
                source_pdf, context, embedded, verify_url_for(embedded)
            )
            digest = self.hasher(content)
            passes += 1

        if digest != embedded:
            logger.warning(
                "certification_hash_unstable",
                envelope_id=context.envelope_id,
                embedded_hash=embedded,
                final_hash=digest,
            )

        return CertifiedDocument(
            content=content,
            sha256=digest,
            verify_url=verify_url_for(digest),
            embedded_hash=embedded,
            embedded_verify_url=verify_url_for(embedded),
            passes=passes,
        )

    def _render_certification_pass(
        self,
        source_pdf: bytes,
        ctx: CertificationContext,
        cert_hash: str,
        verify_url: str,
    ) -> bytes:
        doc = self._open(source_pdf)
        try:
            page = self._new_page(doc)
            self._draw_certification_page(page, ctx, cert_hash, verify_url)
            return doc.tobytes(garbage=3, deflate=True)
        finally:
            doc.close()

    def _draw_certification_page(
        self,
        page: fitz.Page,
        ctx: CertificationContext,
        cert_hash: str,
        verify_url: str,
    ) -> None:
        width = page.rect.width
        height = page.rect.height
        margin = 54

        page.draw_line(
            (margin, margin + 8), (width - margin, margin + 8), color=(0.85, 0.86, 0.89), width=1
        )
        page.insert_text(
            (margin, margin + 32),
            "OASIS DIGITAL PARLIAMENT - DOCUMENT CERTIFICATION",
            fontsize=11,
            fontname=FONT_BOLD,
            color=(0.35, 0.38, 0.45),
        )
        page.insert_text(
            (margin, margin + 70),
            "Certified Minute Book Artifact",
            fontsize=22,
            fontname=FONT_BOLD,
            color=(0.08, 0.09, 0.11),
        )

        meta_lines = [
            ("Document", truncate_middle(ctx.title, 60)),
            ("Entity", ctx.entity_name or "-"),
            ("Entity ID", ctx.entity_id),
            ("Record ID", ctx.record_id),
            ("Envelope ID", ctx.envelope_id),
            ("Lane", "SANDBOX" if ctx.is_test else "RoT"),
            ("Certified At", ctx.certified_at),
        ]
        y = margin + 110
        for label, value in meta_lines:
            page.insert_text((margin, y), label.upper(), fontsize=9, fontname=FONT_BOLD, color=LABEL)
            page.insert_text((margin + 140, y), str(value), fontsize=10, fontname=FONT, color=INK)
            y += 18

        page.insert_text(
            (margin, y + 10),
            "SHA-256 (Certified PDF)",
            fontsize=10,
            fontname=FONT_BOLD,
            color=(0.45, 0.48, 0.56),
        )
        hash_box = fitz.Rect(margin, y + 18, width - margin, y + 58)
        page.draw_rect(hash_box, color=(0.80, 0.82, 0.86), width=1)
        page.insert_text(
            (margin + 12, hash_box.y1 - 14), cert_hash, fontsize=9, fontname=FONT, color=INK
        )

        page.insert_text(
            (margin, hash_box.y1 + 26),
            "Verification (hash-first)",
            fontsize=10,
            fontname=FONT_BOLD,
            color=(0.45, 0.48, 0.56),
        )
        page.insert_text(
            (margin, hash_box.y1 + 44), verify_url, fontsize=7, fontname=FONT, color=INK
        )

        qr_size = 132
        qr_rect = fitz.Rect(
            width - margin - qr_size, height - margin - qr_size, width - margin, height - margin
        )
        page.draw_rect(
            fitz.Rect(qr_rect.x0 - 6, qr_rect.y0 - 6, qr_rect.x1 + 6, qr_rect.y1 + 6),
            color=GOLD,
            width=1,
        )
        try:
            draw_qr(page, verify_url, qr_rect)
        except (ValueError, DataOverflowError) as e:
            raise CertificateRenderError(details=str(e)) from e

        page.insert_text(
            (qr_rect.x0, qr_rect.y0 - 10),
            "Scan to verify",
            fontsize=9,
            fontname=FONT_BOLD,
            color=(0.40, 0.42, 0.50),
        )
        page.insert_text(
            (margin, height - margin + 40),
            "Registry-grade artifact - Issued by the Oasis Digital Parliament Ledger",
            fontsize=9,
            fontname=FONT,
            color=(0.45, 0.48, 0.56),
        )

    # --- helpers ---

    def _open(self, pdf_bytes: bytes) -> fitz.Document:
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise CertificateRenderError(error="BASE_DOCUMENT_UNREADABLE", details=str(e)) from e
        if not doc.is_pdf or doc.page_count == 0:
            doc.close()
            raise CertificateRenderError(
                error="BASE_DOCUMENT_UNREADABLE", details="document has no pages"
            )
        return doc

    def _new_page(self, doc: fitz.Document) -> fitz.Page:
        # Match the size of the document's last page
        size = doc[-1].rect
        return doc.new_page(-1, width=size.width, height=size.height)


# Singleton instance
certificate_renderer = CertificateRenderer()
