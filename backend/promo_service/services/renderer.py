from __future__ import annotations

import io
from typing import Callable, Sequence
from urllib.parse import quote

import qrcode
import structlog
from reportlab.lib.colors import HexColor, black
from reportlab.lib.pagesizes import A5
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen.canvas import Canvas

from promo_service.services.codes import PromoCode

logger = structlog.get_logger(__name__)

MARGIN = 30
QR_SIZE = 120
ACCENT = HexColor("#007bff")
MUTED = HexColor("#555555")
BODY = HexColor("#333333")

QrFactory = Callable[[str], bytes]


def whatsapp_link(phone: str, code: str) -> str:
    message = f"I want to redeem the promo code {code} and want to shop."
    return f"https://wa.me/{phone}?text={quote(message)}"


def make_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(border=1, box_size=8)
    qr.add_data(data)
    qr.make(fit=True)
    buffer = io.BytesIO()
    qr.make_image(fill_color="black", back_color="white").save(buffer)
    return buffer.getvalue()


class _Page:
    """Writes centred lines top-down on one A5 card."""

    def __init__(self, pdf: Canvas) -> None:
        self.pdf = pdf
        self.width, height = A5
        self.y = height - MARGIN

    def text(
        self,
        value: str,
        *,
        size: int,
        bold: bool = False,
        color=black,
        underline: bool = False,
        space_after: float = 0,
    ) -> None:
        font = "Helvetica-Bold" if bold else "Helvetica"
        self.pdf.setFont(font, size)
        self.pdf.setFillColor(color)
        for line in simpleSplit(value, font, size, self.width - 2 * MARGIN):
            self.y -= size * 1.2
            self.pdf.drawCentredString(self.width / 2, self.y, line)
            if underline:
                line_width = self.pdf.stringWidth(line, font, size)
                self.pdf.setStrokeColor(color)
                self.pdf.line(
                    (self.width - line_width) / 2,
                    self.y - 2,
                    (self.width + line_width) / 2,
                    self.y - 2,
                )
        self.y -= space_after

    def image(self, png: bytes) -> None:
        self.y -= QR_SIZE
        self.pdf.drawImage(
            ImageReader(io.BytesIO(png)),
            (self.width - QR_SIZE) / 2,
            self.y,
            width=QR_SIZE,
            height=QR_SIZE,
        )


def render_promo_pdf(
    codes: Sequence[PromoCode],
    *,
    contact_phone: str,
    discount_percent: int,
    qr_factory: QrFactory = make_qr_png,
) -> bytes:
    """Render one A5 card per code and return the PDF bytes.

    A QR code that fails to render is replaced by a text placeholder on that
    card only.
    """
    buffer = io.BytesIO()
    pdf = Canvas(buffer, pagesize=A5)
    pdf.setTitle("Promo codes")

    for promo in codes:
        _draw_card(pdf, promo, contact_phone=contact_phone, discount_percent=discount_percent, qr_factory=qr_factory)
        pdf.showPage()

    pdf.save()
    return buffer.getvalue()


def _draw_card(
    pdf: Canvas,
    promo: PromoCode,
    *,
    contact_phone: str,
    discount_percent: int,
    qr_factory: QrFactory,
) -> None:
    page = _Page(pdf)
    page.text("Thank You!", size=22, bold=True, underline=True, space_after=12)
    page.text("We sincerely appreciate your order with us.", size=16, space_after=12)
    page.text("We value your feedback and would love to hear from you!", size=14, color=MUTED, space_after=12)
    page.text("Send your feedback via WhatsApp:", size=14, bold=True, color=ACCENT, space_after=8)
    page.text(f"Contact us at: +{contact_phone}", size=12, color=ACCENT, space_after=12)
    page.text(
        f"Enjoy a {discount_percent}% Discount on Your Next Purchase!",
        size=16,
        bold=True,
        color=ACCENT,
        underline=True,
        space_after=14,
    )
    page.text("Promo Code:", size=18, bold=True, color=ACCENT)
    page.text(promo.code, size=22, bold=True, color=ACCENT, underline=True, space_after=6)
    page.text(f"Valid until: {promo.expires_at.isoformat()}", size=10, color=MUTED, space_after=12)
    page.text("To Redeem Your Promo Code:", size=14, color=BODY, underline=True, space_after=8)
    page.text("1. Scan the QR code below to open our WhatsApp chat.", size=12, color=BODY)
    page.text(f'2. Send us a message with the promo code "{promo.code}".', size=12, color=BODY)
    page.text(f"3. Enjoy a {discount_percent}% discount on your next purchase!", size=12, color=BODY, space_after=12)

    try:
        png = qr_factory(whatsapp_link(contact_phone, promo.code))
        page.image(png)
    except Exception as exc:
        logger.warning("promo_qr_render_failed", code=promo.code, error=str(exc))
        page.text("Error generating QR code.", size=12, color=BODY)
