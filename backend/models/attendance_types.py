"""
Attendance Type Models - إعدادات أنواع الحضور والأدلة والنتيجة
============================================================
الإعدادات تأتي كـ JSON من إعدادات نوع الحضور.
القراءة دفاعية: أي عنصر تالف يتم تجاهله (مع تسجيل تحذير)
بدلاً من إسقاط الإعدادات بالكامل.
"""
import logging
import math
from enum import Enum
from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

DEFAULT_ROUTE_TOLERANCE_M = 300
DEFAULT_CODE_MAX_DISTANCE_M = 100


class ValidationMode(str, Enum):
    """طريقة دمج نتائج المواقع"""
    ANY = "any"     # يكفي موقع واحد
    ALL = "all"     # يجب مطابقة كل المواقع المفعلة


def _parse_mode(value) -> ValidationMode:
    try:
        return ValidationMode(str(value).lower())
    except ValueError:
        logger.warning(f"Unknown validation_mode {value!r}, falling back to 'any'")
        return ValidationMode.ANY


def _parse_entries(model, items, label: str) -> list:
    """قراءة قائمة العناصر مع تجاهل التالف منها"""
    if not isinstance(items, list):
        if items is not None:
            logger.warning(f"Ignoring {label}: expected a list, got {type(items).__name__}")
        return []

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(f"Ignoring {label}[{index}]: not an object")
            continue
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Ignoring malformed {label}[{index}]: {e.error_count()} error(s)")
    return parsed


_FLAG = TypeAdapter(bool)


def _parse_flag(value, label: str) -> bool:
    """"false" / "0" / "off" تعتبر False مثل حقول pydantic"""
    if value is None:
        return False
    try:
        return _FLAG.validate_python(value)
    except ValidationError:
        logger.warning(f"Ignoring {label}={value!r}: not a boolean")
        return False


def _as_dict(raw) -> dict:
    return raw if isinstance(raw, dict) else {}


class Candidate(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str = "unknown"
    name: str = "Unnamed"
    is_active: bool = True

    @model_validator(mode="before")
    @classmethod
    def _null_means_default(cls, data):
        # null في الإعدادات = القيمة الافتراضية
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


# ============================================================
# المضلعات الجغرافية - geo_polygon
# ============================================================

class Region(Candidate):
    points: List[Any] = []


class PolygonConfig(BaseModel):
    polygons: List[Region] = []
    validation_mode: ValidationMode = ValidationMode.ANY
    allow_without_location: bool = False

    @classmethod
    def from_config(cls, raw) -> "PolygonConfig":
        raw = _as_dict(raw)
        polygons = _parse_entries(Region, raw.get("polygons"), "polygons")

        # الصيغة القديمة: مضلع واحد في config.polygon
        if not polygons and isinstance(raw.get("polygon"), list):
            polygons = [Region(id="legacy_polygon", name="Primary Location", points=raw["polygon"])]

        return cls(
            polygons=polygons,
            validation_mode=_parse_mode(raw.get("validation_mode", "any")),
            allow_without_location=_parse_flag(raw.get("allow_without_location"), "allow_without_location"),
        )


# ============================================================
# الشبكات - wifi_ip
# ============================================================

class NetworkLocation(Candidate):
    allowed_ips: List[str] = []
    allowed_ranges: List[str] = []


class NetworkConfig(BaseModel):
    ip_locations: List[NetworkLocation] = []
    validation_mode: ValidationMode = ValidationMode.ANY
    allow_without_network: bool = False

    @classmethod
    def from_config(cls, raw) -> "NetworkConfig":
        raw = _as_dict(raw)
        locations = _parse_entries(NetworkLocation, raw.get("ip_locations"), "ip_locations")

        # الصيغة القديمة: allowed_ips / allowed_ranges في الجذر
        if not locations and (raw.get("allowed_ips") or raw.get("allowed_ranges")):
            locations = _parse_entries(NetworkLocation, [{
                "id": "legacy_network",
                "name": "Primary Network",
                "allowed_ips": raw.get("allowed_ips") or [],
                "allowed_ranges": raw.get("allowed_ranges") or [],
            }], "allowed_ips")

        return cls(
            ip_locations=locations,
            validation_mode=_parse_mode(raw.get("validation_mode", "any")),
            allow_without_network=_parse_flag(raw.get("allow_without_network"), "allow_without_network"),
        )


# ============================================================
# المسارات - route_waypoint
# ============================================================

class Route(Candidate):
    waypoints: List[Any] = []
    tolerance: float = DEFAULT_ROUTE_TOLERANCE_M


class RouteConfig(BaseModel):
    routes: List[Route] = []
    validation_mode: ValidationMode = ValidationMode.ANY
    allow_without_location: bool = False

    @classmethod
    def from_config(cls, raw) -> "RouteConfig":
        raw = _as_dict(raw)
        routes = _parse_entries(Route, raw.get("routes"), "routes")

        # الصيغة القديمة: waypoints + tolerance في الجذر
        if not routes and isinstance(raw.get("waypoints"), list):
            routes = _parse_entries(Route, [{
                "id": "legacy_route",
                "name": "Primary Route",
                "waypoints": raw["waypoints"],
                "tolerance": raw.get("tolerance", DEFAULT_ROUTE_TOLERANCE_M),
            }], "waypoints")

        return cls(
            routes=routes,
            validation_mode=_parse_mode(raw.get("validation_mode", "any")),
            allow_without_location=_parse_flag(raw.get("allow_without_location"), "allow_without_location"),
        )


# ============================================================
# رموز QR - qr_code
# ============================================================

class AccessCode(Candidate):
    code: str
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    one_time_use: Optional[bool] = None
    require_location: Optional[bool] = None
    location: Optional[Any] = None
    max_distance: Optional[float] = None


class CodeConfig(BaseModel):
    qr_codes: List[AccessCode] = []
    code_expiry_hours: Optional[float] = None
    one_time_use: bool = False
    require_location: bool = False
    max_distance: float = DEFAULT_CODE_MAX_DISTANCE_M

    @classmethod
    def from_config(cls, raw) -> "CodeConfig":
        raw = _as_dict(raw)
        values = {"qr_codes": _parse_entries(AccessCode, raw.get("qr_codes"), "qr_codes")}

        for key in ("code_expiry_hours", "one_time_use", "require_location", "max_distance"):
            if raw.get(key) is not None:
                values[key] = raw[key]

        try:
            return cls(**values)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed QR code defaults: {e.error_count()} error(s)")
            return cls(qr_codes=values["qr_codes"])


# ============================================================
# نوع الحضور + الأدلة + النتيجة
# ============================================================

class AttendanceTypeConfig(BaseModel):
    slug: str
    name: Optional[str] = None
    config: Dict[str, Any] = {}

    @field_validator("config", mode="before")
    @classmethod
    def _config_as_dict(cls, value):
        return value if isinstance(value, dict) else {}


class Evidence(BaseModel):
    """الأدلة المرسلة مع البصمة"""
    lat: Optional[float] = None
    lng: Optional[float] = None
    code: Optional[str] = None
    client_ip: Optional[str] = None
    forwarded_for: Optional[str] = None   # X-Forwarded-For
    real_ip: Optional[str] = None         # X-Real-IP
    employee_id: Optional[str] = None

    @field_validator("lat", "lng")
    @classmethod
    def _usable_coordinate(cls, value, info):
        # NaN / inf / خارج النطاق = لا يوجد موقع
        if value is None:
            return None
        limit = 90 if info.field_name == "lat" else 180
        if not math.isfinite(value) or abs(value) > limit:
            logger.warning(f"Discarding unusable {info.field_name}={value!r} from evidence")
            return None
        return value

    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None


class Verdict(BaseModel):
    """نتيجة التحقق"""
    success: bool
    message: str
    message_ar: str = ""
    status_code: int = 200
    error_code: Optional[str] = None
    metadata: Dict[str, Any] = {}
