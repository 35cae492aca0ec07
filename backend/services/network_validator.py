"""
Network Validator - التحقق من شبكة الموظف (WiFi / IP)
============================================================
عنوان العميل الفعلي:
1. أول قيمة في X-Forwarded-For
2. X-Real-IP
3. عنوان الاتصال المباشر

كل موقع يُطابق بقائمة عناوين محددة أو نطاقات CIDR.
"""
from typing import Optional, Tuple
from models.attendance_types import Evidence, NetworkConfig, NetworkLocation, ValidationMode, Verdict
from utils.error_codes import ErrorCode
from utils.geo_math import cidr_contains
from services.validation_common import (
    STATUS_UNPROCESSABLE,
    active_candidates,
    error_verdict,
    reduce_by_mode,
    success_verdict,
    unvalidated_verdict,
)


def resolve_client_ip(client_ip: Optional[str], forwarded_for: Optional[str] = None, real_ip: Optional[str] = None) -> Optional[str]:
    """تحديد عنوان IP الحقيقي خلف الـ proxy"""
    if forwarded_for:
        first = forwarded_for.split(',')[0].strip()
        if first:
            return first
    if real_ip and real_ip.strip():
        return real_ip.strip()
    if client_ip and client_ip.strip():
        return client_ip.strip()
    return None


def match_location(ip: str, location: NetworkLocation) -> Tuple[bool, Optional[str]]:
    """
    Returns:
        (matched, matched_by) حيث matched_by هو العنوان أو النطاق المطابق
    """
    for allowed in location.allowed_ips:
        allowed = allowed.strip()
        if allowed and (allowed == ip or cidr_contains(ip, allowed)):
            return True, allowed

    for cidr in location.allowed_ranges:
        if cidr_contains(ip, cidr):
            return True, cidr.strip()

    return False, None


class NetworkValidator:

    async def validate(self, config, evidence: Evidence) -> Verdict:
        if not isinstance(config, NetworkConfig):
            config = NetworkConfig.from_config(config)

        ip = resolve_client_ip(evidence.client_ip, evidence.forwarded_for, evidence.real_ip)

        if not ip:
            if config.allow_without_network:
                return unvalidated_verdict("network", "الشبكة", "network_unavailable")
            return error_verdict(ErrorCode.EVIDENCE_NETWORK_REQUIRED, status_code=STATUS_UNPROCESSABLE)

        if not config.ip_locations:
            return error_verdict(ErrorCode.CONFIG_NO_NETWORKS, status_code=STATUS_UNPROCESSABLE)

        locations = active_candidates(config.ip_locations)
        if not locations:
            if config.allow_without_network:
                return unvalidated_verdict("network", "الشبكة", "no_active_locations", {"client_ip": ip})
            return error_verdict(ErrorCode.CONFIG_NO_ACTIVE, status_code=STATUS_UNPROCESSABLE)

        checked = []
        for location in locations:
            matched, matched_by = match_location(ip, location)
            checked.append({
                "id": location.id,
                "name": location.name,
                "is_valid": matched,
                "matched_by": matched_by,
            })

        metadata = {
            "client_ip": ip,
            "validation_mode": config.validation_mode.value,
            "checked_locations": checked,
        }

        if not reduce_by_mode(config.validation_mode, [c["is_valid"] for c in checked]):
            if config.validation_mode == ValidationMode.ALL and any(c["is_valid"] for c in checked):
                names = ", ".join(c["name"] for c in checked if not c["is_valid"])
                message = f"Your network ({ip}) is not authorized for all required locations. Missing: {names}."
                message_ar = f"شبكتك ({ip}) غير مصرح بها لجميع المواقع المطلوبة. الناقص: {names}"
            else:
                names = ", ".join(c["name"] for c in checked)
                message = f"Your network ({ip}) is not authorized. Allowed locations: {names}."
                message_ar = f"شبكتك ({ip}) غير مصرح بها. المواقع المسموحة: {names}"
            return error_verdict(ErrorCode.DENIED_NETWORK, message, message_ar, metadata=metadata)

        matched = next(c for c in checked if c["is_valid"])
        metadata.update({
            "validated": True,
            "matched_location": matched["id"],
            "matched_location_name": matched["name"],
        })
        return success_verdict(
            f"Network verified: {matched['name']}.",
            f"تم التحقق من الشبكة: {matched['name']}",
            metadata
        )
