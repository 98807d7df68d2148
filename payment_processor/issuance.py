"""
🎫 Ticket issuance after a successful payment.

Renders a one-page PDF ticket (Pillow + qrcode), stores it under
``tickets/<registration_id>.pdf`` (overwriting any earlier copy) and writes the
public URL back on the registration. Issuance is best effort: failures are logged
and returned, never raised, and payment state is never touched here.
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils import timezone
from PIL import Image, ImageDraw, ImageFont

from apps.bookings.models import Registration
from apps.events.models import Ticket
from core.utils import generate_qr_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuanceResult:
    ok: bool
    registration_id: str
    ticket_url: Optional[str] = None
    storage_key: Optional[str] = None
    pdf: Optional[bytes] = None
    error: Optional[str] = None
    skipped: bool = False


class TicketPdfGenerator:
    """Draws the ticket page."""

    WIDTH = 800
    PADDING = 48
    LINE_HEIGHT = 34
    TITLE_SIZE = 30
    BODY_SIZE = 20
    QR_SIZE = 260
    BG_COLOR = (255, 255, 255)
    TEXT_COLOR = (33, 33, 33)
    ACCENT_COLOR = (91, 33, 182)
    BORDER_COLOR = (220, 220, 220)

    @classmethod
    def _get_font(cls, size: int):
        try:
            return ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", size)
        except (OSError, IOError):
            return ImageFont.load_default()

    @classmethod
    def _draw_text(cls, draw, y: int, text: str, font, color=None):
        draw.text((cls.PADDING, y), str(text)[:60], fill=color or cls.TEXT_COLOR, font=font)
        return y + cls.LINE_HEIGHT

    @classmethod
    def ticket_lines(cls, registration: Registration):
        quantities = registration.tickets_bought or {}
        names = {
            str(ticket.id): ticket.name
            for ticket in Ticket.objects.filter(pk__in=list(quantities.keys()))
        }
        return [f"{names.get(ticket_id, 'Ticket')} x {quantity}" for ticket_id, quantity in quantities.items()]

    @classmethod
    def generate_pdf(cls, registration: Registration, qr_data: str) -> bytes:
        event = registration.event
        lines = cls.ticket_lines(registration)
        start = timezone.localtime(event.start_date).strftime('%d %b %Y, %I:%M %p') if event.start_date else 'TBA'

        height = cls.PADDING * 3 + (9 + len(lines)) * cls.LINE_HEIGHT + cls.QR_SIZE
        img = Image.new('RGB', (cls.WIDTH, height), cls.BG_COLOR)
        draw = ImageDraw.Draw(img)
        font_title = cls._get_font(cls.TITLE_SIZE)
        font_body = cls._get_font(cls.BODY_SIZE)

        y = cls.PADDING
        draw.text((cls.PADDING, y), event.name[:40], fill=cls.ACCENT_COLOR, font=font_title)
        y += cls.LINE_HEIGHT + 12
        draw.line([(cls.PADDING, y), (cls.WIDTH - cls.PADDING, y)], fill=cls.BORDER_COLOR, width=2)
        y += 16

        y = cls._draw_text(draw, y, f"Attendee: {registration.first_name}", font_body)
        y = cls._draw_text(draw, y, f"Email: {registration.email}", font_body)
        y = cls._draw_text(draw, y, f"When: {start}", font_body)
        y = cls._draw_text(draw, y, f"Where: {event.location or 'TBA'}", font_body)
        for line in lines:
            y = cls._draw_text(draw, y, line, font_body)
        y = cls._draw_text(draw, y, f"Amount paid: INR {registration.final_amount}", font_body)
        y = cls._draw_text(draw, y, f"Booking: {registration.name}", font_body)

        qr_image = generate_qr_code(qr_data).resize((cls.QR_SIZE, cls.QR_SIZE))
        img.paste(qr_image, ((cls.WIDTH - cls.QR_SIZE) // 2, y + cls.PADDING // 2))

        buffer = io.BytesIO()
        img.save(buffer, format='PDF', resolution=150.0)
        return buffer.getvalue()


class TicketIssuer:
    """Generate, store and attach the ticket artifact for a paid registration."""

    def __init__(self, storage=None, storage_prefix: Optional[str] = None, frontend_url: Optional[str] = None):
        self.storage = storage or default_storage
        self.storage_prefix = (storage_prefix or settings.TICKET_STORAGE_PREFIX).strip('/')
        self.frontend_url = (frontend_url or settings.FRONTEND_URL).rstrip('/')

    def storage_key(self, registration_id) -> str:
        return f"{self.storage_prefix}/{registration_id}.pdf"

    def issue(self, registration_id) -> IssuanceResult:
        registration_id = str(registration_id)
        try:
            registration = Registration.objects.select_related('event').get(pk=registration_id)
        except Registration.DoesNotExist:
            logger.warning(f"🎫 [ISSUANCE] Registration {registration_id} not found")
            return IssuanceResult(ok=False, registration_id=registration_id, error='Registration not found')

        if registration.payment_status != Registration.PAYMENT_PAID:
            logger.warning(
                f"🎫 [ISSUANCE] Registration {registration_id} is {registration.payment_status}; not issuing"
            )
            return IssuanceResult(ok=False, registration_id=registration_id, skipped=True,
                                  error='Registration is not paid')

        key = self.storage_key(registration_id)
        try:
            pdf = TicketPdfGenerator.generate_pdf(registration, f"{self.frontend_url}/tickets/{registration_id}")
            if self.storage.exists(key):
                self.storage.delete(key)
            saved_key = self.storage.save(key, ContentFile(pdf))
            ticket_url = self.storage.url(saved_key)

            Registration.objects.filter(pk=registration.pk).update(ticket_url=ticket_url, updated_at=timezone.now())
            logger.info(f"🎫 [ISSUANCE] Ticket for registration {registration_id} stored at {saved_key}")
            return IssuanceResult(ok=True, registration_id=registration_id, ticket_url=ticket_url,
                                  storage_key=saved_key, pdf=pdf)
        except Exception as e:
            logger.error(f"🎫 [ISSUANCE] Failed to issue ticket for {registration_id}: {e}", exc_info=True)
            return IssuanceResult(ok=False, registration_id=registration_id, storage_key=key, error=str(e))

    def load_pdf(self, registration_id) -> Optional[bytes]:
        """Stored ticket bytes, if the ticket was issued."""
        key = self.storage_key(registration_id)
        try:
            if not self.storage.exists(key):
                return None
            with self.storage.open(key, 'rb') as handle:
                return handle.read()
        except Exception as e:
            logger.error(f"🎫 [ISSUANCE] Could not read stored ticket {key}: {e}", exc_info=True)
            return None
