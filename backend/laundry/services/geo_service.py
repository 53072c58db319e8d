# Overview: Distance and travel-time estimates for delivery orders.

from __future__ import annotations

import math
from dataclasses import dataclass

import httpx
from flask import current_app

EARTH_RADIUS_METERS = 6371000
# 50 km/h
FALLBACK_SPEED_MPS = 13.89

ORS_DIRECTIONS_URL = "https://api.openrouteservice.org/v2/directions/driving-car"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class RouteEstimate:
    distance_meters: float
    duration_seconds: float
    source: str


def haversine_distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in meters."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def _openrouteservice(start: Coordinates, end: Coordinates, api_key: str) -> RouteEstimate | None:
    response = httpx.post(
        ORS_DIRECTIONS_URL,
        json={"coordinates": [[start.lng, start.lat], [end.lng, end.lat]]},
        headers={"Authorization": api_key},
        timeout=current_app.config.get("ROUTE_SERVICE_TIMEOUT", 5.0),
    )
    response.raise_for_status()
    features = response.json().get("features") or []
    summary = features[0].get("properties", {}).get("summary") if features else None
    if not summary:
        return None
    return RouteEstimate(
        distance_meters=float(summary["distance"]),
        duration_seconds=float(summary["duration"]),
        source="openrouteservice",
    )


def route_distance(start: Coordinates, end: Coordinates) -> RouteEstimate:
    """
    Driving distance/duration between two points.

    Uses OpenRouteService when OPENROUTESERVICE_API_KEY is configured;
    otherwise (or when the service fails) straight-line distance at 50 km/h.
    """
    api_key = current_app.config.get("OPENROUTESERVICE_API_KEY")
    if api_key:
        try:
            estimate = _openrouteservice(start, end, api_key)
            if estimate:
                return estimate
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            current_app.logger.warning("Route service unavailable, using straight-line distance: %s", exc)

    distance = haversine_distance(start, end)
    return RouteEstimate(
        distance_meters=distance,
        duration_seconds=distance / FALLBACK_SPEED_MPS,
        source="haversine",
    )
