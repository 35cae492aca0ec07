"""
Validator Factory - اختيار نوع التحقق حسب نوع الحضور
============================================================
slug نوع الحضور قد يحمل رقماً للتمييز (wifi_ip_2) ويتم حذفه
قبل البحث في السجل.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Union
from services.code_validator import CodeValidator
from services.network_validator import NetworkValidator
from services.polygon_validator import PolygonValidator
from services.replay_guard import ReplayGuard, utc_now
from services.route_resolver import RouteResolver
from services.route_validator import RouteValidator

_NUMERIC_SUFFIX = re.compile(r"_\d+$")


class UnknownAttendanceKindError(ValueError):
    """نوع حضور غير معروف - خطأ في الإعدادات وليس رفضاً للبصمة"""

    def __init__(self, slug) -> None:
        self.slug = slug
        super().__init__(f"Unknown attendance type: {slug!r}")


def normalize_kind(slug: str) -> str:
    return _NUMERIC_SUFFIX.sub("", str(slug).strip().lower())


class AttendanceKind(str, Enum):
    """أنواع التحقق المدعومة"""
    GEO_POLYGON = "geo_polygon"         # داخل مضلع جغرافي
    WIFI_IP = "wifi_ip"                 # شبكة / عنوان IP
    ROUTE_WAYPOINT = "route_waypoint"   # على مسار معتمد
    QR_CODE = "qr_code"                 # مسح رمز QR

    @classmethod
    def from_slug(cls, slug) -> "AttendanceKind":
        if isinstance(slug, cls):
            return slug
        try:
            return cls(normalize_kind(slug))
        except ValueError:
            raise UnknownAttendanceKindError(slug) from None


@dataclass
class ValidatorDependencies:
    replay_guard: ReplayGuard
    route_resolver: RouteResolver
    clock: Callable[[], datetime] = utc_now


VALIDATOR_REGISTRY: Dict[AttendanceKind, Callable] = {
    AttendanceKind.GEO_POLYGON: lambda deps: PolygonValidator(),
    AttendanceKind.WIFI_IP: lambda deps: NetworkValidator(),
    AttendanceKind.ROUTE_WAYPOINT: lambda deps: RouteValidator(deps.route_resolver),
    AttendanceKind.QR_CODE: lambda deps: CodeValidator(deps.replay_guard, deps.clock),
}

_missing = set(AttendanceKind) - set(VALIDATOR_REGISTRY)
assert not _missing, f"No validator registered for: {sorted(k.value for k in _missing)}"


def create_validator(kind: Union[AttendanceKind, str], deps: ValidatorDependencies):
    """
    Raises:
        UnknownAttendanceKindError: إذا لم يكن النوع مدعوماً
    """
    return VALIDATOR_REGISTRY[AttendanceKind.from_slug(kind)](deps)
