"""Upcoming-jam search ordered by great-circle distance.

Two execution paths return the same rows:

- the store computes the haversine distance in SQL, filters by radius and
  sorts, when it provides trigonometric functions;
- otherwise up to FETCH_LIMIT upcoming jams are loaded and distances are
  computed here.

Which one is used is decided once at startup (`geo_capability.detect`) and
latched to the fallback for the process lifetime when the store rejects
the distance query.
"""

import datetime
import logging
import math
import threading
from dataclasses import dataclass, field

from sqlalchemy import exists, or_
from sqlalchemy.exc import DBAPIError
from sqlmodel import Session, func, select

from models.common import json_array_overlaps
from models.jam import Jam
from models.profile import Profile

logger = logging.getLogger("jammer.geo")

EARTH_RADIUS_KM = 6371
KM_TO_MILES = 0.621371
DEFAULT_RADIUS_MILES = 25
FETCH_LIMIT = 200
RESULTS_LIMIT = 40

# messages the stores use for a missing SQL function
MISSING_FUNCTION_MARKERS = ("no such function", "does not exist", "undefined function")


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def km_to_miles(km: float) -> float:
    return km * KM_TO_MILES


def miles_to_km(miles: float) -> float:
    return miles / KM_TO_MILES


def format_distance_miles(miles: float | None) -> str | None:
    """
    >>> format_distance_miles(0.1)
    '<0.3 mi'
    >>> format_distance_miles(3.14)
    '3.1 mi'
    >>> format_distance_miles(12.6)
    '13 mi'
    """
    if miles is None or math.isnan(miles):
        return None
    if miles < 0.25:
        return "<0.3 mi"
    if miles < 10:
        return f"{miles:.1f} mi"
    return f"{round(miles)} mi"


class GeoCapability:
    """Whether the store can evaluate the distance query, shared by all requests"""

    def __init__(self):
        self._lock = threading.Lock()
        self._available: bool | None = None

    @property
    def available(self) -> bool:
        with self._lock:
            return bool(self._available)

    def set(self, available: bool) -> None:
        with self._lock:
            self._available = available

    def mark_unavailable(self, reason: str) -> None:
        with self._lock:
            if self._available is False:
                return
            self._available = False
        logger.warning(f"Store-side distance search disabled: {reason}")

    def detect(self, session: Session) -> bool:
        try:
            session.exec(
                select(
                    func.asin(func.sqrt(func.sin(func.radians(1.0)) * func.cos(0.5)))
                )
            ).one()
        except DBAPIError as e:
            session.rollback()
            self.mark_unavailable(str(e.orig))
            return False
        self.set(True)
        logger.debug("Store-side distance search available")
        return True


geo_capability = GeoCapability()


def is_missing_function_error(error: DBAPIError) -> bool:
    message = str(error.orig).lower()
    return any(marker in message for marker in MISSING_FUNCTION_MARKERS)


@dataclass
class JamSearch:
    instruments: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    terms: list[str] = field(default_factory=list)
    lat: float | None = None
    lng: float | None = None
    radius_miles: float = DEFAULT_RADIUS_MILES
    date_from: datetime.datetime | None = None
    date_to: datetime.datetime | None = None

    @property
    def has_origin(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def radius_km(self) -> float:
        return miles_to_km(self.radius_miles)

    @property
    def like_text(self) -> str:
        return sanitize_like(" ".join(self.terms))


@dataclass
class JamHit:
    jam: Jam
    distance_km: float | None = None

    @property
    def distance_miles(self) -> float | None:
        if self.distance_km is None:
            return None
        return km_to_miles(self.distance_km)


def sanitize_like(value: str) -> str:
    """
    >>> sanitize_like(" 100%_jazz ")
    '100  jazz'
    """
    return value.replace("%", " ").replace("_", " ").strip()


def _filtered_query(search: JamSearch, now: datetime.datetime, *columns):
    query = select(Jam, *columns).where(Jam.jam_time >= now)

    if search.instruments:
        query = query.where(json_array_overlaps(Jam.desired_instruments, search.instruments))

    if search.genres:
        query = query.where(
            exists(
                select(Profile.id).where(
                    Profile.id == Jam.host_id,
                    json_array_overlaps(Profile.genres, search.genres),
                )
            )
        )

    if search.like_text:
        like_term = f"%{search.like_text}%"
        query = query.where(
            or_(Jam.title.ilike(like_term), Jam.description.ilike(like_term))
        )

    if search.date_from:
        query = query.where(Jam.jam_time >= search.date_from)
    if search.date_to:
        query = query.where(Jam.jam_time <= search.date_to)

    if search.has_origin:
        query = query.where(Jam.lat.is_not(None), Jam.lng.is_not(None))
    return query


def _distance_expression(lat: float, lng: float):
    d_lat = func.radians(Jam.lat - lat)
    d_lng = func.radians(Jam.lng - lng)
    half_lat = func.sin(d_lat / 2)
    half_lng = func.sin(d_lng / 2)
    a = half_lat * half_lat + func.cos(func.radians(lat)) * func.cos(
        func.radians(Jam.lat)
    ) * half_lng * half_lng
    return 2 * EARTH_RADIUS_KM * func.asin(func.sqrt(a))


def search_in_store(session: Session, search: JamSearch, now) -> list[JamHit]:
    if not search.has_origin:
        rows = session.exec(
            _filtered_query(search, now).order_by(Jam.jam_time).limit(FETCH_LIMIT)
        ).all()
        return [JamHit(jam=jam) for jam in rows]

    distance = _distance_expression(search.lat, search.lng)
    labeled = distance.label("distance_km")
    query = (
        _filtered_query(search, now, labeled)
        .where(distance <= search.radius_km)
        .order_by(labeled, Jam.jam_time)
        .limit(FETCH_LIMIT)
    )
    return [JamHit(jam=jam, distance_km=dist) for jam, dist in session.exec(query).all()]


def search_in_process(session: Session, search: JamSearch, now) -> list[JamHit]:
    jams = session.exec(
        _filtered_query(search, now).order_by(Jam.jam_time).limit(FETCH_LIMIT)
    ).all()
    if not search.has_origin:
        return [JamHit(jam=jam) for jam in jams]

    hits = []
    for jam in jams:
        if not jam.has_coordinates:
            continue
        distance = haversine_km(search.lat, search.lng, jam.lat, jam.lng)
        if distance > search.radius_km:
            continue
        hits.append(JamHit(jam=jam, distance_km=distance))
    hits.sort(key=lambda hit: (hit.distance_km, hit.jam.jam_time))
    return hits


def search_jams(
    session: Session, search: JamSearch, now: datetime.datetime | None = None
) -> list[JamHit]:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    if geo_capability.available:
        try:
            return search_in_store(session, search, now)
        except DBAPIError as e:
            session.rollback()
            if not is_missing_function_error(e):
                raise
            geo_capability.mark_unavailable(str(e.orig))
    return search_in_process(session, search, now)


def search_result_entries(hits: list[JamHit], hosts: dict[str, Profile]) -> list[dict]:
    """Compact entries for the results list, nearest first then soonest"""
    far_away = float("inf")
    ordered = sorted(
        hits,
        key=lambda hit: (
            hit.distance_miles if hit.distance_miles is not None else far_away,
            hit.jam.jam_time,
        ),
    )
    entries = []
    for hit in ordered[:RESULTS_LIMIT]:
        jam = hit.jam
        host = hosts.get(jam.host_id)
        location = ", ".join(part for part in (jam.city, jam.country) if part and part.strip())
        entries.append(
            {
                "id": f"jam-{jam.id}",
                "type": "jam",
                "jam_id": jam.id,
                "title": jam.title,
                "href": f"/jams/{jam.id}",
                "meta_label": f"Hosted by {host.display_name}" if host else None,
                "jam_time": jam.jam_time.isoformat(),
                "location": location or None,
                "distance_miles": hit.distance_miles,
                "distance_label": format_distance_miles(hit.distance_miles),
                "badges": list(jam.desired_instruments or [])[:4],
            }
        )
    return entries
