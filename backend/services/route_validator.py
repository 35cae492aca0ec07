"""
Route Validator - التحقق من وجود الموظف على مسار معتمد
============================================================
يدعم عدة مسارات، كل مسار له سماحية بالمتر.
التحقق الفعلي لكل مسار يتم عبر RouteResolver.
"""
import asyncio
from models.attendance_types import Evidence, RouteConfig, ValidationMode, Verdict
from utils.error_codes import ErrorCode
from services.route_resolver import RouteResolver
from services.validation_common import (
    STATUS_UNPROCESSABLE,
    active_candidates,
    error_verdict,
    nearest_checked,
    reduce_by_mode,
    success_verdict,
    unvalidated_verdict,
)


class RouteValidator:

    def __init__(self, route_resolver: RouteResolver) -> None:
        self.route_resolver = route_resolver

    async def validate(self, config, evidence: Evidence) -> Verdict:
        if not isinstance(config, RouteConfig):
            config = RouteConfig.from_config(config)

        if not evidence.has_location():
            if config.allow_without_location:
                return unvalidated_verdict("location", "الموقع", "location_unavailable")
            return error_verdict(
                ErrorCode.EVIDENCE_LOCATION_REQUIRED,
                "Location data is required for route waypoint validation. Please enable location access and try again.",
                status_code=STATUS_UNPROCESSABLE
            )

        if not config.routes:
            return error_verdict(ErrorCode.CONFIG_NO_ROUTES, status_code=STATUS_UNPROCESSABLE)

        routes = active_candidates(config.routes)
        if not routes:
            if config.allow_without_location:
                return unvalidated_verdict("location", "الموقع", "no_active_routes")
            return error_verdict(ErrorCode.CONFIG_NO_ACTIVE, status_code=STATUS_UNPROCESSABLE)

        # كل مسار مستقل - الطلبات تعمل بالتوازي
        results = await asyncio.gather(*[
            self.route_resolver.resolve(evidence.lat, evidence.lng, route.waypoints, route.tolerance)
            for route in routes
        ])

        checked = [
            {
                "id": route.id,
                "name": route.name,
                "is_valid": result.is_valid,
                "distance": result.distance,
                "fallback_used": result.fallback_used,
            }
            for route, result in zip(routes, results)
        ]

        metadata = {
            "validation_mode": config.validation_mode.value,
            "checked_routes": checked,
            "fallback_used": any(result.fallback_used for result in results),
        }

        if not reduce_by_mode(config.validation_mode, [c["is_valid"] for c in checked]):
            closest = nearest_checked(checked)
            metadata["nearest_route"] = closest["id"] if closest else None
            metadata["nearest_distance"] = closest["distance"] if closest else None

            if closest:
                message = (
                    f"You are {closest['distance']:.2f}m away from the nearest route ({closest['name']}). "
                    "Please move closer to an authorized route."
                )
                message_ar = f"أنت على بعد {closest['distance']:.0f} متر من أقرب مسار ({closest['name']})"
            else:
                message = "You are not on any authorized route."
                message_ar = None

            if config.validation_mode == ValidationMode.ALL and any(c["is_valid"] for c in checked):
                names = ", ".join(c["name"] for c in checked if not c["is_valid"])
                message = f"You must be on all authorized routes. Off route: {names}."
                message_ar = f"يجب أن تكون على جميع المسارات المصرح بها. خارج: {names}"

            return error_verdict(ErrorCode.DENIED_OFF_ROUTE, message, message_ar, metadata=metadata)

        index = next(i for i, c in enumerate(checked) if c["is_valid"])
        route, result = routes[index], results[index]
        metadata.update({
            "validated": True,
            "matched_route": route.id,
            "matched_route_name": route.name,
            "route_data": result.to_dict(),
        })
        return success_verdict(
            result.message or f"Location verified on route: {route.name}",
            f"تم التحقق من الموقع على المسار: {route.name}",
            metadata
        )
