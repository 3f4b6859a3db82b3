import io
from urllib.parse import urlencode, urlsplit

import qrcode

from .schemas import Employee, LoyaltyProfile

# Enrollment code value, not the live balance.
# TODO: confirm with the loyalty team whether the QR should carry profile.points instead.
QR_ENROLLMENT_POINTS = 100
QR_SCAN_TYPE = "iphone"


def encode_qr_payload(base_host: str, employee: Employee, profile: LoyaltyProfile) -> str:
    parts = urlsplit(base_host or "")
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Invalid QR base host: {base_host!r}")

    params = {
        "firstName": employee.first_name,
        "lastName": employee.last_name,
        "role": employee.role,
        "employeeId": employee.employee_id,
        "chatUserId": profile.chat_user_id,
        "loyaltyId": profile.loyalty_id,
        "points": str(QR_ENROLLMENT_POINTS),
        "scanType": QR_SCAN_TYPE,
    }
    return f"{base_host.rstrip('/')}/scan?{urlencode(params)}"


def render_qr_png(payload: str, box_size: int = 10, border: int = 4) -> bytes:
    qr = qrcode.QRCode(version=None, box_size=box_size, border=border)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
