"""Draw QR codes on PDF pages as vector cells."""

import fitz  # PyMuPDF
import qrcode
from qrcode.constants import ERROR_CORRECT_M

QUIET_ZONE = 2  # modules

WHITE = (1, 1, 1)
BLACK = (0, 0, 0)


def qr_matrix(payload: str, quiet_zone: int = QUIET_ZONE) -> list[list[bool]]:
    """Module matrix for ``payload``, quiet zone included, row 0 at the top."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=quiet_zone)
    qr.add_data(payload)
    qr.make(fit=True)
    return qr.get_matrix()


def draw_qr(page: fitz.Page, payload: str, rect: fitz.Rect) -> list[list[bool]]:
    """
    Draw ``payload`` as a QR code filling the square ``rect``.

    A white plate is painted first, then one filled rectangle per dark
    module; nothing is rasterised. Returns the drawn matrix.
    """
    matrix = qr_matrix(payload)
    size = len(matrix)
    if not size or any(len(row) != size for row in matrix):
        raise ValueError("CERTIFICATE_QR_MATRIX_FAILED")

    side = min(rect.width, rect.height)
    cell = side / size

    page.draw_rect(rect, color=None, fill=WHITE, width=0)

    shape = page.new_shape()
    for row_index, row in enumerate(matrix):
        for col_index, dark in enumerate(row):
            if not dark:
                continue
            x0 = rect.x0 + col_index * cell
            y0 = rect.y0 + row_index * cell
            shape.draw_rect(fitz.Rect(x0, y0, x0 + cell, y0 + cell))
    shape.finish(color=None, fill=BLACK, width=0)
    shape.commit()

    return matrix
