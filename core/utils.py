"""Utility functions for the Tuki bookings service."""

import uuid
import qrcode


def is_valid_uuid(value) -> bool:
    """Return True when ``value`` is a canonical UUID string or a UUID."""
    if isinstance(value, uuid.UUID):
        return True
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.strip().lower()
    except ValueError:
        return False


def generate_qr_code(data, size=10):
    """Generate a QR code image from the given data. Returns a PIL image."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=size,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    return img.get_image().convert('RGB')
