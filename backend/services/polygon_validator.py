"""
Polygon Validator - التحقق من الموقع داخل مضلع جغرافي
============================================================
العضوية ثنائية: داخل المضلع أو خارجه، بدون سماحية مسافة.
المسافة إلى أقرب رأس تُستخدم فقط لرسالة الخطأ.
"""
import logging
from typing import Optional
from models.attendance_types import Evidence, PolygonConfig, ValidationMode, Verdict
from utils.error_codes import ErrorCode
from utils.geo_math import haversine_distance_meters, parse_point, point_in_polygon
from services.validation_common import (
    STATUS_UNPROCESSABLE,
    active_candidates,
    error_verdict,
    nearest_checked,
    reduce_by_mode,
    success_verdict,
    unvalidated_verdict,
)

logger = logging.getLogger(__name__)

MIN_POLYGON_VERTICES = 3


def _nearest_vertex_distance(lat: float, lng: float, points: list) -> Optional[float]:
    distances = [
        haversine_distance_meters(lat, lng, p[0], p[1])
        for p in (parse_point(v) for v in points)
        if p
    ]
    return round(min(distances), 2) if distances else None


class PolygonValidator:

    async def validate(self, config, evidence: Evidence) -> Verdict:
        if not isinstance(config, PolygonConfig):
            config = PolygonConfig.from_config(config)

        if not evidence.has_location():
            if config.allow_without_location:
                return unvalidated_verdict("location", "الموقع", "location_unavailable")
            return error_verdict(
                ErrorCode.EVIDENCE_LOCATION_REQUIRED,
                "Location data is required for polygon validation. Please enable location access and try again.",
                status_code=STATUS_UNPROCESSABLE
            )

        if not config.polygons:
            return error_verdict(ErrorCode.CONFIG_NO_REGIONS, status_code=STATUS_UNPROCESSABLE)

        regions = active_candidates(config.polygons)
        if not regions:
            if config.allow_without_location:
                return unvalidated_verdict("location", "الموقع", "no_active_regions")
            return error_verdict(ErrorCode.CONFIG_NO_ACTIVE, status_code=STATUS_UNPROCESSABLE)

        lat, lng = evidence.lat, evidence.lng
        checked = []
        for region in regions:
            usable = sum(1 for v in region.points if parse_point(v))
            if usable < MIN_POLYGON_VERTICES:
                logger.warning(f"Region {region.id} has {usable} usable vertices, treating as no match")
                is_inside = False
            else:
                is_inside = point_in_polygon(lat, lng, region.points)

            checked.append({
                "id": region.id,
                "name": region.name,
                "is_inside": is_inside,
                "distance": _nearest_vertex_distance(lat, lng, region.points),
            })

        metadata = {
            "validation_mode": config.validation_mode.value,
            "checked_regions": checked,
        }

        if not reduce_by_mode(config.validation_mode, [c["is_inside"] for c in checked]):
            outside = [c for c in checked if not c["is_inside"]]
            closest = nearest_checked(outside)
            metadata["nearest_region"] = closest["id"] if closest else None

            if config.validation_mode == ValidationMode.ALL and len(outside) < len(checked):
                names = ", ".join(c["name"] for c in outside)
                message = f"You must be inside all authorized locations. Outside: {names}."
                message_ar = f"يجب أن تكون داخل جميع المواقع المصرح بها. خارج: {names}"
            elif closest:
                message = (
                    f"You are outside all authorized locations. Nearest location: "
                    f"{closest['name']} ({closest['distance']:.0f}m away)."
                )
                message_ar = f"أنت خارج المواقع المصرح بها. أقرب موقع: {closest['name']} (على بعد {closest['distance']:.0f} متر)"
            else:
                message = "You are not within any authorized location."
                message_ar = None

            return error_verdict(ErrorCode.DENIED_OUTSIDE_REGION, message, message_ar, metadata=metadata)

        matched = next(c for c in checked if c["is_inside"])
        metadata.update({
            "validated": True,
            "matched_region": matched["id"],
            "matched_region_name": matched["name"],
        })
        return success_verdict(
            f"Location verified within {matched['name']}.",
            f"تم التحقق من الموقع داخل {matched['name']}",
            metadata
        )
