"""
Geo Math - حسابات الموقع والشبكة
============================================================
دوال بحتة بدون أي اعتماد على قاعدة البيانات:
1. هل النقطة داخل المضلع؟ (ray casting)
2. المسافة بين نقطتين بالمتر (haversine)
3. هل عنوان IPv4 ضمن نطاق CIDR؟ (ipaddress)

الإحداثيات بالدرجات العشرية (WGS-84) والمسافات بالمتر.
"""
import ipaddress
import math
from typing import Optional, Tuple

# نصف قطر الأرض بالمتر
EARTH_RADIUS_M = 6371000


def _to_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_point(point) -> Optional[Tuple[float, float]]:
    """
    قراءة نقطة من {lat, lng} أو {latitude, longitude} أو [lat, lng]

    Returns:
        (lat, lng) أو None إذا كانت الإحداثيات ناقصة أو غير رقمية
    """
    if isinstance(point, dict):
        lat = point.get('lat', point.get('latitude'))
        lng = point.get('lng', point.get('longitude'))
    elif isinstance(point, (list, tuple)) and len(point) >= 2:
        lat, lng = point[0], point[1]
    else:
        return None

    lat = _to_float(lat)
    lng = _to_float(lng)
    if lat is None or lng is None:
        return None
    return lat, lng


def point_in_polygon(lat: float, lng: float, vertices) -> bool:
    """
    Even-odd ray casting test.

    The vertex list is implicitly closed (last vertex connects to the first)
    and may be convex or not, in any winding order. An edge touching a vertex
    with missing coordinates is skipped instead of failing the whole test.
    """
    if not vertices:
        return False

    points = [parse_point(v) for v in vertices]
    count = len(points)
    inside = False

    for i in range(count):
        a = points[i]
        b = points[i - 1]  # i=0 يربط آخر نقطة بأول نقطة
        if a is None or b is None:
            continue

        lat_a, lng_a = a
        lat_b, lng_b = b

        # الشعاع أفقي على محور خط العرض
        if (lat_a > lat) != (lat_b > lat):
            crossing = (lng_b - lng_a) * (lat - lat_a) / (lat_b - lat_a) + lng_a
            if lng < crossing:
                inside = not inside

    return inside


def haversine_distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    حساب المسافة بالمتر بين نقطتين

    Raises:
        ValueError: إذا كانت أي إحداثية NaN أو لا نهائية
    """
    if not all(math.isfinite(value) for value in (lat1, lng1, lat2, lng2)):
        raise ValueError("Coordinates must be finite numbers")

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lng = math.radians(lng2 - lng1)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lng / 2) ** 2
    # a قد تتجاوز 1 بسبب أخطاء التقريب
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def _ipv4(value: str) -> Optional[ipaddress.IPv4Address]:
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    return address if address.version == 4 else None


def cidr_contains(ip: str, cidr: str) -> bool:
    """
    هل عنوان IP ضمن النطاق؟

    "192.168.1.0/24" يطابق 192.168.1.x
    بدون "/" تتم المطابقة الحرفية للعنوان
    أي مدخل غير صالح يعيد False ولا يرفع استثناء
    """
    if not isinstance(ip, str) or not isinstance(cidr, str):
        return False

    address = _ipv4(ip)
    if address is None:
        return False

    cidr = cidr.strip()
    if '/' not in cidr:
        return address == _ipv4(cidr)

    try:
        network = ipaddress.ip_network(cidr, strict=False)
    except ValueError:
        return False
    return network.version == 4 and address in network
