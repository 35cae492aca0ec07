"""
Validation Common - دوال مشتركة بين أنواع التحقق
"""
from typing import Dict, List, Optional
from models.attendance_types import ValidationMode, Verdict

STATUS_OK = 200
STATUS_DENIED = 403
STATUS_UNPROCESSABLE = 422


def success_verdict(message: str, message_ar: str = "", metadata: Dict = None) -> Verdict:
    return Verdict(
        success=True,
        message=message,
        message_ar=message_ar,
        status_code=STATUS_OK,
        metadata=metadata or {},
    )


def error_verdict(
    error_code: tuple,
    details: str = None,
    details_ar: str = None,
    status_code: int = STATUS_DENIED,
    metadata: Dict = None
) -> Verdict:
    """
    بناء نتيجة فشل من رمز خطأ

    Args:
        error_code: tuple من (code, message_en, message_ar)
        details: رسالة مفصلة تحل محل الرسالة العامة
        status_code: 403 للرفض، 422 للإعدادات أو الأدلة الناقصة
    """
    code, msg_en, msg_ar = error_code
    return Verdict(
        success=False,
        message=details or msg_en,
        message_ar=details_ar or msg_ar,
        status_code=status_code,
        error_code=code,
        metadata=metadata or {},
    )


def unvalidated_verdict(what: str, what_ar: str, reason: str, metadata: Dict = None) -> Verdict:
    """قبول البصمة بدون تحقق - عند تفعيل خيار السماح بدون دليل"""
    metadata = dict(metadata or {})
    metadata.update({"validated": False, "fallback_reason": reason})
    return success_verdict(
        f"Attendance recorded without {what} validation.",
        f"تم تسجيل الحضور بدون التحقق من {what_ar}",
        metadata,
    )


def active_candidates(candidates: list) -> list:
    return [c for c in candidates if c.is_active]


def reduce_by_mode(mode: ValidationMode, results: List[bool]) -> bool:
    """any = OR, all = AND - القائمة الفارغة دائماً False"""
    if not results:
        return False
    if mode == ValidationMode.ALL:
        return all(results)
    return any(results)


def nearest_checked(checked: List[Dict], key: str = "distance") -> Optional[Dict]:
    """أقرب موقع من قائمة الفحوصات (تجاهل المسافات غير المعروفة)"""
    measured = [c for c in checked if c.get(key) is not None]
    if not measured:
        return None
    return min(measured, key=lambda c: c[key])
