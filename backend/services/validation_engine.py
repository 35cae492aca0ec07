"""
Validation Engine - محرك التحقق من دليل الحضور
============================================================
طلب واحد -> نتيجة واحدة:
1. اختيار نوع التحقق حسب slug نوع الحضور
2. تنفيذ التحقق على الإعدادات والأدلة
3. إرجاع النتيجة كما هي

لا يحفظ أي حالة. الحالة المشتركة الوحيدة هي ذاكرة الرموز المستخدمة
داخل ReplayGuard.
"""
import logging
from datetime import datetime
from typing import Callable, Optional, Union
from pydantic import ValidationError
from models.attendance_types import AttendanceTypeConfig, Evidence, Verdict
from utils.error_codes import ErrorCode
from services.replay_guard import ReplayGuard, utc_now
from services.route_resolver import RouteResolver
from services.validation_common import STATUS_UNPROCESSABLE, error_verdict
from services.validator_factory import (
    UnknownAttendanceKindError,
    ValidatorDependencies,
    create_validator,
)

logger = logging.getLogger(__name__)


def unknown_kind_verdict(slug) -> Verdict:
    return error_verdict(
        ErrorCode.CONFIG_UNKNOWN_KIND,
        f"Invalid attendance type configuration: unknown type '{slug}'.",
        f"إعدادات نوع الحضور غير صالحة: النوع '{slug}' غير معروف",
        status_code=STATUS_UNPROCESSABLE,
        metadata={"attendance_type": slug}
    )


class ValidationEngine:

    def __init__(
        self,
        replay_guard: ReplayGuard,
        route_resolver: Optional[RouteResolver] = None,
        clock: Callable[[], datetime] = utc_now
    ) -> None:
        self.deps = ValidatorDependencies(
            replay_guard=replay_guard,
            route_resolver=route_resolver or RouteResolver(),
            clock=clock,
        )

    async def validate(self, attendance_type: Union[AttendanceTypeConfig, dict], evidence: Evidence) -> Verdict:
        if not isinstance(attendance_type, AttendanceTypeConfig):
            try:
                attendance_type = AttendanceTypeConfig.model_validate(attendance_type)
            except ValidationError as e:
                slug = attendance_type.get("slug") if isinstance(attendance_type, dict) else None
                logger.warning(f"Attendance validation rejected: malformed attendance type ({e.error_count()} error(s))")
                return unknown_kind_verdict(slug)

        try:
            validator = create_validator(attendance_type.slug, self.deps)
        except UnknownAttendanceKindError as e:
            logger.warning(f"Attendance validation rejected: {e}")
            return unknown_kind_verdict(e.slug)

        verdict = await validator.validate(attendance_type.config, evidence)
        logger.info(
            f"Attendance validation: type={attendance_type.slug} success={verdict.success} "
            f"status={verdict.status_code} code={verdict.error_code}"
        )
        return verdict
