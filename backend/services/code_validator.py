"""
Code Validator - التحقق من رمز QR الممسوح
============================================================
الرمز مقبول إذا:
1. يطابق رمزاً محدداً في الإعدادات
2. مفعل
3. لم يتجاوز expires_at
4. لم يتجاوز created_at + code_expiry_hours (إن وُجدت)
5. لم يُستخدم مسبقاً إذا كان للاستخدام مرة واحدة
6. الموظف ضمن max_distance من موقع الرمز (إذا كان الموقع مطلوباً)

إعدادات الرمز نفسه تتقدم على الإعدادات العامة.
"""
import hmac
from datetime import datetime, timezone, timedelta
from typing import Callable, Optional
from models.attendance_types import AccessCode, CodeConfig, Evidence, Verdict
from utils.error_codes import ErrorCode
from utils.geo_math import haversine_distance_meters, parse_point
from services.replay_guard import ReplayGuard, utc_now
from services.validation_common import STATUS_UNPROCESSABLE, error_verdict, success_verdict


def _aware(value: datetime) -> datetime:
    # التواريخ بدون منطقة زمنية تعتبر UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def token_id(candidate: AccessCode) -> str:
    """مفتاح الاستخدام: معرف الرمز، أو الرمز نفسه إذا لم يكن له معرف"""
    return candidate.id if candidate.id != "unknown" else candidate.code


class CodeValidator:

    def __init__(self, replay_guard: ReplayGuard, clock: Callable[[], datetime] = utc_now) -> None:
        self.replay_guard = replay_guard
        self.clock = clock

    @staticmethod
    def is_one_time(candidate: AccessCode, config: CodeConfig) -> bool:
        if candidate.one_time_use is not None:
            return candidate.one_time_use
        return config.one_time_use

    @staticmethod
    def requires_location(candidate: AccessCode, config: CodeConfig) -> bool:
        if candidate.require_location is not None:
            return candidate.require_location
        return config.require_location

    async def _rejection(self, candidate: AccessCode, config: CodeConfig, now: datetime) -> Optional[Verdict]:
        """سبب رفض الرمز المطابق، أو None إذا كان صالحاً"""
        metadata = {"code_id": candidate.id}

        if not candidate.is_active:
            return error_verdict(ErrorCode.DENIED_CODE_INACTIVE, metadata=metadata)

        if candidate.expires_at and _aware(candidate.expires_at) <= now:
            metadata["expired_at"] = _aware(candidate.expires_at).isoformat()
            return error_verdict(ErrorCode.DENIED_CODE_EXPIRED, metadata=metadata)

        if config.code_expiry_hours and candidate.created_at:
            rolling_expiry = _aware(candidate.created_at) + timedelta(hours=config.code_expiry_hours)
            if rolling_expiry <= now:
                metadata["expired_at"] = rolling_expiry.isoformat()
                return error_verdict(ErrorCode.DENIED_CODE_EXPIRED, metadata=metadata)

        if self.is_one_time(candidate, config) and await self.replay_guard.is_used(token_id(candidate)):
            return error_verdict(ErrorCode.DENIED_CODE_USED, metadata=metadata)

        return None

    async def validate(self, config, evidence: Evidence) -> Verdict:
        if not isinstance(config, CodeConfig):
            config = CodeConfig.from_config(config)

        scanned = (evidence.code or "").strip()
        if not scanned:
            return error_verdict(ErrorCode.EVIDENCE_CODE_REQUIRED, status_code=STATUS_UNPROCESSABLE)

        if not config.qr_codes:
            return error_verdict(ErrorCode.CONFIG_NO_CODES, status_code=STATUS_UNPROCESSABLE)

        now = self.clock()
        matched = None
        rejection = None

        for candidate in config.qr_codes:
            if not hmac.compare_digest(candidate.code.strip().encode(), scanned.encode()):
                continue
            reason = await self._rejection(candidate, config, now)
            if reason is None:
                matched = candidate
                break
            rejection = rejection or reason

        if matched is None:
            return rejection or error_verdict(ErrorCode.DENIED_INVALID_CODE)

        metadata = {
            "validated": True,
            "matched_code": matched.id,
            "matched_code_name": matched.name,
        }

        # ============================================================
        # التحقق من الموقع
        # ============================================================
        if self.requires_location(matched, config):
            target = parse_point(matched.location)
            if target is None:
                return error_verdict(
                    ErrorCode.CONFIG_CODE_LOCATION,
                    status_code=STATUS_UNPROCESSABLE,
                    metadata={"code_id": matched.id}
                )

            if not evidence.has_location():
                return error_verdict(
                    ErrorCode.EVIDENCE_LOCATION_REQUIRED,
                    "Location is required for this QR code. Please enable location access and try again.",
                    status_code=STATUS_UNPROCESSABLE,
                    metadata={"code_id": matched.id}
                )

            max_distance = matched.max_distance if matched.max_distance is not None else config.max_distance
            distance = haversine_distance_meters(evidence.lat, evidence.lng, target[0], target[1])

            if distance > max_distance:
                return error_verdict(
                    ErrorCode.DENIED_CODE_DISTANCE,
                    f"You are {distance:.0f}m away from the QR code location. Maximum distance: {max_distance:g}m.",
                    f"أنت على بعد {distance:.0f} متر من موقع الرمز. الحد المسموح {max_distance:g} متر",
                    metadata={"code_id": matched.id, "distance": round(distance, 2), "max_distance": max_distance}
                )

            metadata.update({"distance": round(distance, 2), "max_distance": max_distance})

        # ============================================================
        # الاستخدام مرة واحدة
        # ============================================================
        one_time = self.is_one_time(matched, config)
        metadata["one_time_use"] = one_time

        if one_time:
            consumed = await self.replay_guard.try_consume(token_id(matched), who=evidence.employee_id, when=now)
            if not consumed:
                # طلب آخر استخدم الرمز بين الفحص والاستهلاك
                return error_verdict(ErrorCode.DENIED_CODE_USED, metadata={"code_id": matched.id})

        return success_verdict(
            f"QR code verified: {matched.name}.",
            f"تم التحقق من رمز QR: {matched.name}",
            metadata
        )
