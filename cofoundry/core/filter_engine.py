"""Discovery filter engine — pure business logic.

Decides whether a candidate profile passes a SearchFilter. Every dimension
lives in one ordered registry: admits() evaluates the active entries and
active_filter_count() counts them, so the "N active filters" summary always
matches what is actually applied.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Iterable, Iterator

from cofoundry.core.search_filter import (
    NEW_USER_WINDOW_DAYS,
    AgeRange,
    GenderFilter,
    LocationPreference,
    SearchFilter,
    ShowMeFilter,
)

if TYPE_CHECKING:
    from cofoundry.data.models import CandidateProfile

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3958.8
INFINITE_DISTANCE = math.inf

Coordinates = tuple[float, float]


# ---------------------------------------------------------------------------
# Distance
# ---------------------------------------------------------------------------


def _valid_latitude(lat: float) -> bool:
    return math.isfinite(lat) and -90 <= lat <= 90


def _valid_longitude(lon: float) -> bool:
    return math.isfinite(lon) and -180 <= lon <= 180


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in miles using the haversine formula.

    Invalid coordinates (out of range or non-finite) and non-finite results
    yield INFINITE_DISTANCE instead of raising: a candidate we cannot place
    on the map is simply out of range.
    """
    if not (
        _valid_latitude(lat1) and _valid_longitude(lon1)
        and _valid_latitude(lat2) and _valid_longitude(lon2)
    ):
        logger.warning(
            "Invalid coordinates: from (%s, %s) to (%s, %s)", lat1, lon1, lat2, lon2,
        )
        return INFINITE_DISTANCE

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Float rounding can push a slightly outside [0, 1] near antipodes
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    distance = EARTH_RADIUS_MILES * c

    if not math.isfinite(distance) or distance < 0:
        logger.warning("Invalid distance calculation result: %s", distance)
        return INFINITE_DISTANCE
    return distance


# ---------------------------------------------------------------------------
# Dimension registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Context:
    requester_location: Coordinates | None
    now: datetime


@dataclass(frozen=True)
class Dimension:
    """One independently togglable filter dimension."""

    name: str
    is_active: Callable[[SearchFilter], bool]
    admits: Callable[[SearchFilter, CandidateProfile, _Context], bool]


def _values(options: Iterable) -> set[str]:
    """Enum members -> their raw string values."""
    return {getattr(o, "value", o) for o in options}


def _multi(filter_attr: str, candidate_attr: str) -> Dimension:
    """Multi-valued candidate attribute: non-empty intersection required."""
    return Dimension(
        name=filter_attr,
        is_active=lambda f: bool(getattr(f, filter_attr)),
        admits=lambda f, c, ctx: bool(
            _values(getattr(f, filter_attr)) & set(getattr(c, candidate_attr) or ())
        ),
    )


def _single(filter_attr: str, candidate_attr: str) -> Dimension:
    """Single-valued candidate attribute: membership required, missing excludes."""

    def admits(f: SearchFilter, c: CandidateProfile, ctx: _Context) -> bool:
        value = getattr(c, candidate_attr)
        return value is not None and value in _values(getattr(f, filter_attr))

    return Dimension(
        name=filter_attr,
        is_active=lambda f: bool(getattr(f, filter_attr)),
        admits=admits,
    )


def _admits_distance(f: SearchFilter, c: CandidateProfile, ctx: _Context) -> bool:
    if ctx.requester_location is None or c.latitude is None or c.longitude is None:
        return False
    lat, lon = ctx.requester_location
    return distance_miles(lat, lon, c.latitude, c.longitude) <= f.distance_radius


def _admits_gender(f: SearchFilter, c: CandidateProfile, ctx: _Context) -> bool:
    if c.gender is None:
        return False
    if f.gender is not GenderFilter.ALL and c.gender != f.gender.value:
        return False
    if f.show_me is not ShowMeFilter.EVERYONE and c.gender != f.show_me.value:
        return False
    return True


def _admits_new_user(f: SearchFilter, c: CandidateProfile, ctx: _Context) -> bool:
    if c.joined_at is None:
        return False
    return c.joined_at >= ctx.now - timedelta(days=NEW_USER_WINDOW_DAYS)


def _admits_recent_activity(f: SearchFilter, c: CandidateProfile, ctx: _Context) -> bool:
    if c.last_active is None:
        return False
    return c.last_active >= ctx.now - timedelta(days=f.active_in_last_days)


def _admits_experience(f: SearchFilter, c: CandidateProfile, ctx: _Context) -> bool:
    return c.years_experience is not None and f.experience_range.contains(c.years_experience)


def _admits_age(f: SearchFilter, c: CandidateProfile, ctx: _Context) -> bool:
    return c.age is not None and f.age_range.contains(c.age)


def _admits_height(f: SearchFilter, c: CandidateProfile, ctx: _Context) -> bool:
    return c.height_inches is not None and f.height_range.contains(c.height_inches)


_DEFAULT_AGE_RANGE = AgeRange()

# Cheap flag checks first, then distance, then set and range dimensions.
DIMENSIONS: tuple[Dimension, ...] = (
    Dimension("verified_only", lambda f: f.verified_only, lambda f, c, ctx: c.is_verified),
    Dimension("funded_only", lambda f: f.funded_only, lambda f, c, ctx: c.currently_funded),
    Dimension("photos_only", lambda f: f.photos_only, lambda f, c, ctx: bool(c.photos)),
    Dimension("new_users_only", lambda f: f.new_users_only, _admits_new_user),
    Dimension(
        "active_in_last_days",
        lambda f: f.active_in_last_days is not None,
        _admits_recent_activity,
    ),
    Dimension(
        "gender",
        lambda f: f.gender is not GenderFilter.ALL or f.show_me is not ShowMeFilter.EVERYONE,
        _admits_gender,
    ),
    Dimension(
        "distance",
        lambda f: LocationPreference.LOCAL in f.location_preferences,
        _admits_distance,
    ),
    _multi("skills_offered", "skills"),
    _multi("skills_sought", "skills_sought"),
    _multi("industries", "industries"),
    _multi("role_types", "role_seeking_types"),
    _single("startup_stages", "startup_stage"),
    _single("commitment_levels", "time_commitment"),
    _single("equity_expectations", "equity_expectation"),
    _single("funding_experience", "funding_experience"),
    _single("investment_capacities", "investment_capacity"),
    _single("location_preferences", "location_preference"),
    _single("education_levels", "education_level"),
    Dimension(
        "experience_range",
        lambda f: f.experience_range is not None,
        _admits_experience,
    ),
    Dimension("age_range", lambda f: f.age_range != _DEFAULT_AGE_RANGE, _admits_age),
    Dimension("height_range", lambda f: f.height_range is not None, _admits_height),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def active_dimensions(search_filter: SearchFilter) -> list[str]:
    """Names of the dimensions that deviate from "don't care"."""
    return [d.name for d in DIMENSIONS if d.is_active(search_filter)]


def active_filter_count(search_filter: SearchFilter) -> int:
    """Number of active dimensions, for the "N filters" summary."""
    return len(active_dimensions(search_filter))


def admits(
    search_filter: SearchFilter,
    candidate: CandidateProfile,
    requester_location: Coordinates | None = None,
    now: datetime | None = None,
) -> bool:
    """Return True if the candidate passes every active dimension.

    Args:
        search_filter: The filter to apply.
        candidate: The profile to test.
        requester_location: (lat, lon) of the searching user, if known.
            Only consulted when the filter asks for local matches.
        now: Reference instant for recency dimensions (defaults to UTC now).
    """
    ctx = _Context(
        requester_location=requester_location,
        now=now or datetime.now(timezone.utc),
    )
    for dimension in DIMENSIONS:
        if dimension.is_active(search_filter) and not dimension.admits(
            search_filter, candidate, ctx,
        ):
            return False
    return True


def filter_candidates(
    search_filter: SearchFilter,
    candidates: Iterable[CandidateProfile],
    requester_location: Coordinates | None = None,
    now: datetime | None = None,
) -> Iterator[CandidateProfile]:
    """Lazily yield the candidates admitted by the filter."""
    now = now or datetime.now(timezone.utc)
    for candidate in candidates:
        if admits(search_filter, candidate, requester_location, now):
            yield candidate
