# Error Codes System for the Attendance Presence Engine
# نظام رموز الأخطاء

from datetime import datetime, timezone
import uuid

class ErrorCode:
    """نظام رموز الأخطاء الموحد"""

    # Configuration Errors (31xx)
    CONFIG_UNKNOWN_KIND = ("E3101", "Unknown attendance type", "نوع الحضور غير معروف")
    CONFIG_NO_REGIONS = ("E3102", "No regions configured for this attendance type", "لا توجد مناطق محددة لنوع الحضور")
    CONFIG_NO_NETWORKS = ("E3103", "No network locations configured for this attendance type", "لا توجد شبكات محددة لنوع الحضور")
    CONFIG_NO_ROUTES = ("E3104", "No routes configured for this attendance type", "لا توجد مسارات محددة لنوع الحضور")
    CONFIG_NO_CODES = ("E3105", "No QR codes configured for this attendance type", "لا توجد رموز QR محددة لنوع الحضور")
    CONFIG_NO_ACTIVE = ("E3106", "No active locations configured for this attendance type", "لا توجد مواقع مفعلة لنوع الحضور")
    CONFIG_CODE_LOCATION = ("E3107", "QR code requires a location but none is configured", "رمز QR يتطلب موقعاً غير محدد")

    # Evidence Errors (32xx)
    EVIDENCE_LOCATION_REQUIRED = ("E3201", "Location data is required", "يجب تفعيل تحديد الموقع")
    EVIDENCE_NETWORK_REQUIRED = ("E3202", "Network address could not be determined", "تعذر تحديد عنوان الشبكة")
    EVIDENCE_CODE_REQUIRED = ("E3203", "QR code is required", "يجب مسح رمز QR")

    # Authorization Failures (33xx)
    DENIED_OUTSIDE_REGION = ("E3301", "Outside allowed work region", "خارج نطاق منطقة العمل المسموحة")
    DENIED_NETWORK = ("E3302", "Not connected to an authorized network", "غير متصل بشبكة مصرح بها")
    DENIED_OFF_ROUTE = ("E3303", "Not on an authorized route", "لست على مسار مصرح به")
    DENIED_INVALID_CODE = ("E3304", "Invalid QR code", "رمز QR غير صالح")
    DENIED_CODE_INACTIVE = ("E3305", "QR code is inactive", "رمز QR غير مفعل")
    DENIED_CODE_EXPIRED = ("E3306", "QR code has expired", "انتهت صلاحية رمز QR")
    DENIED_CODE_USED = ("E3307", "QR code has already been used", "تم استخدام رمز QR مسبقاً")
    DENIED_CODE_DISTANCE = ("E3308", "Too far from the QR code location", "أنت بعيد عن موقع رمز QR")

    # General Errors (9xxx)
    GENERAL_SERVER_ERROR = ("E9003", "Internal server error", "خطأ في الخادم")


def create_error_response(error_code: tuple, details: str = None, details_ar: str = None):
    """
    إنشاء استجابة خطأ موحدة

    Args:
        error_code: tuple من (code, message_en, message_ar)
        details: تفاصيل إضافية بالإنجليزية
        details_ar: تفاصيل إضافية بالعربية

    Returns:
        dict: استجابة الخطأ الموحدة
    """
    code, msg_en, msg_ar = error_code

    # إنشاء معرف فريد للخطأ
    error_id = f"{code}-{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:6].upper()}"

    return {
        "error": True,
        "error_code": code,
        "error_id": error_id,
        "message": msg_en,
        "message_ar": msg_ar,
        "details": details,
        "details_ar": details_ar,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "support_message": f"If this error persists, contact support with reference: {error_id}",
        "support_message_ar": f"إذا استمر هذا الخطأ، تواصل مع الدعم مع الرقم المرجعي: {error_id}"
    }
