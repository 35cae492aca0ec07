"""
Route Resolver - التحقق من القرب من مسار عبر OSRM
============================================================
1. طلب المسار الفعلي من خدمة التوجيه (lng,lat;lng,lat;...)
2. حساب أقل مسافة من الموظف إلى نقاط المسار
3. عند أي فشل (مهلة، خطأ HTTP، مسار فارغ): حساب أقل مسافة
   إلى نقاط المسار المدخلة مباشرة

لا يرفع أي استثناء - دائماً يعيد نتيجة.
"""
import asyncio
import logging
import os
from dataclasses import dataclass, asdict
from typing import List, Optional, Tuple
import requests
from utils.geo_math import haversine_distance_meters, parse_point

logger = logging.getLogger(__name__)

OSRM_URL = os.environ.get('OSRM_URL', 'http://router.project-osrm.org')

# المهلة القصوى لطلب المسار (ثواني)
MAX_ROUTE_TIMEOUT_SECONDS = 10.0
OSRM_TIMEOUT_SECONDS = min(float(os.environ.get('OSRM_TIMEOUT_SECONDS', MAX_ROUTE_TIMEOUT_SECONDS)), MAX_ROUTE_TIMEOUT_SECONDS)


@dataclass
class RouteCheck:
    is_valid: bool
    distance: Optional[float]
    tolerance: float
    fallback_used: bool = False
    nearest_waypoint: Optional[int] = None
    route_distance: Optional[float] = None
    route_duration: Optional[float] = None
    message: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def min_distance_to_points(lat: float, lng: float, points: List[Tuple[float, float]]) -> Tuple[Optional[float], Optional[int]]:
    """أقل مسافة إلى مجموعة نقاط (lat, lng) + رقم أقرب نقطة (يبدأ من 1)"""
    best_distance = None
    best_index = None
    for index, (point_lat, point_lng) in enumerate(points):
        distance = haversine_distance_meters(lat, lng, point_lat, point_lng)
        if best_distance is None or distance < best_distance:
            best_distance = distance
            best_index = index + 1
    return best_distance, best_index


class RouteResolver:

    def __init__(self, base_url: str = None, timeout: float = None, session=None) -> None:
        self.base_url = (base_url or OSRM_URL).rstrip('/')
        self.timeout = min(timeout or OSRM_TIMEOUT_SECONDS, MAX_ROUTE_TIMEOUT_SECONDS)
        self.session = session or requests.Session()

    def build_url(self, points: List[Tuple[float, float]]) -> str:
        coordinates = ';'.join(f"{lng},{lat}" for lat, lng in points)
        return f"{self.base_url}/route/v1/driving/{coordinates}?overview=full&geometries=geojson"

    def fetch_route(self, points: List[Tuple[float, float]]) -> Optional[dict]:
        """طلب المسار من OSRM - None عند أي فشل"""
        url = self.build_url(points)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"OSRM route request failed: {e}")
            return None

        if not 200 <= response.status_code < 300:
            logger.warning(f"OSRM route request failed: status={response.status_code} url={url}")
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"OSRM returned a non-JSON body: url={url}")
            return None

        return data if isinstance(data, dict) else None

    @staticmethod
    def _route_geometry(data: Optional[dict]) -> Tuple[List[Tuple[float, float]], dict]:
        """استخراج نقاط المسار (lng,lat -> lat,lng) من استجابة OSRM"""
        if not data:
            return [], {}
        routes = data.get('routes')
        if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
            return [], {}

        route = routes[0]
        geometry = route.get('geometry')
        coordinates = geometry.get('coordinates') if isinstance(geometry, dict) else None
        if not isinstance(coordinates, list):
            return [], route

        points = []
        for coordinate in coordinates:
            if isinstance(coordinate, (list, tuple)) and len(coordinate) >= 2:
                point = parse_point([coordinate[1], coordinate[0]])
                if point:
                    points.append(point)
        return points, route

    def fallback_check(self, lat: float, lng: float, points: List[Tuple[float, float]], tolerance: float) -> RouteCheck:
        """التحقق بالمسافة المباشرة إلى نقاط المسار المدخلة"""
        distance, nearest = min_distance_to_points(lat, lng, points)
        is_valid = distance is not None and distance <= tolerance

        if distance is None:
            message = "No usable waypoints to validate against."
        elif is_valid:
            message = f"Location verified within {tolerance:g}m of waypoint {nearest} (distance: {distance:.2f}m)."
        else:
            message = f"You are {distance:.2f}m away from the nearest waypoint. Maximum distance: {tolerance:g}m."

        return RouteCheck(
            is_valid=is_valid,
            distance=round(distance, 2) if distance is not None else None,
            tolerance=tolerance,
            fallback_used=True,
            nearest_waypoint=nearest,
            message=message,
        )

    @staticmethod
    def usable_points(waypoints) -> List[Tuple[float, float]]:
        return [p for p in (parse_point(w) for w in waypoints or []) if p]

    @staticmethod
    def _too_few_waypoints(tolerance: float) -> RouteCheck:
        return RouteCheck(
            is_valid=False,
            distance=None,
            tolerance=tolerance,
            message="At least 2 waypoints are required for route validation.",
        )

    def check(self, lat: float, lng: float, waypoints: list, tolerance: float) -> RouteCheck:
        """التحقق المتزامن (يحجب حتى انتهاء طلب HTTP أو المهلة)"""
        points = self.usable_points(waypoints)
        if len(points) < 2:
            return self._too_few_waypoints(tolerance)
        return self._check_points(lat, lng, points, tolerance)

    def _check_points(self, lat: float, lng: float, points: List[Tuple[float, float]], tolerance: float) -> RouteCheck:
        try:
            data = self.fetch_route(points)
            geometry, route = self._route_geometry(data)
        except Exception as e:
            logger.error(f"OSRM validation error: {e}")
            geometry, route = [], {}

        if not geometry:
            return self.fallback_check(lat, lng, points, tolerance)

        distance, _ = min_distance_to_points(lat, lng, geometry)
        is_valid = distance <= tolerance

        return RouteCheck(
            is_valid=is_valid,
            distance=round(distance, 2),
            tolerance=tolerance,
            fallback_used=False,
            route_distance=route.get('distance'),
            route_duration=route.get('duration'),
            message=(
                f"Location verified within {tolerance:g}m of the route (distance: {distance:.2f}m)."
                if is_valid else
                f"You are {distance:.2f}m away from the route. Maximum distance: {tolerance:g}m."
            ),
        )

    async def resolve(self, lat: float, lng: float, waypoints: list, tolerance: float) -> RouteCheck:
        """
        نفس check لكن طلب HTTP يعمل في thread منفصل.

        مهلة requests تنطبق على كل عملية قراءة وليس على الطلب كاملاً،
        لذلك المهلة الكلية تُفرض هنا: بعد self.timeout يتم استخدام
        المسافة المباشرة ويُترك الطلب البطيء يكمل في الخلفية.
        """
        points = self.usable_points(waypoints)
        if len(points) < 2:
            return self._too_few_waypoints(tolerance)

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._check_points, lat, lng, points, tolerance),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"OSRM route request exceeded {self.timeout:g}s overall, using waypoint fallback")
            return self.fallback_check(lat, lng, points, tolerance)
