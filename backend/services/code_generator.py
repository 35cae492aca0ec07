"""
Code Generator - إصدار رموز QR جديدة لنوع الحضور
"""
import base64
import io
import secrets
from datetime import datetime, timezone
from typing import Optional
import qrcode
from models.attendance_types import DEFAULT_CODE_MAX_DISTANCE_M
from utils.geo_math import parse_point


def generate_access_code(
    name: str,
    location: Optional[dict] = None,
    max_distance: float = DEFAULT_CODE_MAX_DISTANCE_M,
    require_location: bool = False,
    one_time_use: bool = False,
    expires_at: Optional[datetime] = None,
    now: Optional[datetime] = None
) -> dict:
    """
    إنشاء عنصر رمز QR جاهز للإضافة إلى config.qr_codes

    Raises:
        ValueError: إذا كان الموقع مطلوباً بدون إحداثيات صالحة
    """
    now = now or datetime.now(timezone.utc)

    point = parse_point(location) if location else None
    if location and point is None:
        raise ValueError("location must contain numeric lat/lng")
    if require_location and point is None:
        raise ValueError("require_location needs a location")

    stored_location = None
    if point:
        stored_location = {"lat": point[0], "lng": point[1]}
        if isinstance(location, dict) and location.get("address"):
            stored_location["address"] = location["address"]

    return {
        "id": f"qr_{secrets.token_hex(4)}",
        "name": name,
        "code": secrets.token_urlsafe(24),
        "location": stored_location,
        "max_distance": max_distance,
        "require_location": require_location,
        "one_time_use": one_time_use,
        "expires_at": expires_at.isoformat() if expires_at else None,
        "created_at": now.isoformat(),
        "is_active": True,
    }


def render_qr_png_base64(data: str, box_size: int = 8) -> str:
    """صورة QR بصيغة PNG مشفرة base64"""
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return base64.b64encode(buffer.getvalue()).decode('ascii')
