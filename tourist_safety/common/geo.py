"""
Geographic utilities for tourist safety tracking.

This module provides the geometric primitives used by the geofence
engine: great-circle distance, point-in-polygon testing, bounding
boxes and coordinate validation.

Known limitation: polygon containment is planar in (longitude, latitude)
space, so rings spanning a pole or the antimeridian are not supported.
Circle containment is spherical (haversine). Both are kept as-is.
"""

import math
from typing import List, Sequence, Tuple

# 구형 지구 근사 반지름 (미터)
EARTH_RADIUS_M = 6_371_000.0

Point = Tuple[float, float]  # (경도, 위도)

def haversine_distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    두 지점 간의 Haversine 거리를 계산합니다 (미터).

    Args:
        lat1: 첫 번째 지점의 위도
        lon1: 첫 번째 지점의 경도
        lat2: 두 번째 지점의 위도
        lon2: 두 번째 지점의 경도

    Returns:
        두 지점 간의 거리 (미터)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2)
    # 부동소수 오차로 1을 약간 넘는 경우 방지
    c = 2 * math.asin(math.sqrt(min(1.0, a)))

    return c * EARTH_RADIUS_M

def point_in_circle(point: Point, center: Point, radius_m: float) -> bool:
    """점이 원형 영역(중심, 반경 m) 안에 있는지 확인합니다. 경계 포함."""
    lon, lat = point
    c_lon, c_lat = center
    return haversine_distance_m(lat, lon, c_lat, c_lon) <= radius_m

def point_in_polygon(point: Point, polygon: Sequence[Point]) -> bool:
    """
    점이 폴리곤 내부에 있는지 Ray casting 알고리즘으로 확인합니다.

    링의 첫 점과 마지막 점이 같을 필요는 없습니다.

    Args:
        point: 확인할 점 (경도, 위도)
        polygon: 폴리곤의 꼭짓점들 [(경도, 위도), ...]

    Returns:
        점이 폴리곤 내부에 있으면 True, 외부에 있으면 False
    """
    if len(polygon) < 3:
        return False

    x, y = point
    n = len(polygon)
    inside = False

    p1x, p1y = polygon[0]
    for i in range(1, n + 1):
        p2x, p2y = polygon[i % n]
        if min(p1y, p2y) < y <= max(p1y, p2y) and x <= max(p1x, p2x):
            if p1x == p2x:
                inside = not inside
            else:
                xinters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
                if x <= xinters:
                    inside = not inside
        p1x, p1y = p2x, p2y

    return inside

def calculate_bounding_box(polygon: Sequence[Point]) -> Tuple[float, float, float, float]:
    """
    폴리곤의 경계 상자를 계산합니다.

    Returns:
        (min_lon, min_lat, max_lon, max_lat)
    """
    if not polygon:
        return (0.0, 0.0, 0.0, 0.0)

    lons = [p[0] for p in polygon]
    lats = [p[1] for p in polygon]

    return (min(lons), min(lats), max(lons), max(lats))

def polygon_centroid(polygon: Sequence[Point]) -> Point:
    """꼭짓점 평균 (볼록 폴리곤에서 내부점으로 사용)"""
    n = len(polygon)
    return (sum(p[0] for p in polygon) / n, sum(p[1] for p in polygon) / n)

def validate_coordinates(lat: float, lon: float) -> bool:
    """
    좌표가 유효한지 확인합니다. NaN/무한대는 거부합니다.

    Args:
        lat: 위도
        lon: 경도

    Returns:
        좌표가 유효하면 True
    """
    if isinstance(lat, bool) or isinstance(lon, bool):
        return False
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180

def normalize_ring(coords: List[List[float]]) -> List[Point]:
    """GeoJSON 스타일 [[lon, lat], ...] 를 튜플 리스트로 변환하고 닫는 점을 제거합니다."""
    ring = [(float(c[0]), float(c[1])) for c in coords]
    if len(ring) > 3 and ring[0] == ring[-1]:
        ring = ring[:-1]
    return ring
