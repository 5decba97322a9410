"""
CoFoundry Safety — Discovery search filter model.

A SearchFilter is an immutable, fully optional description of which
co-founder candidates a user wants to see. Every dimension defaults to
"don't care", so a fresh SearchFilter admits everyone. Evaluation lives in
cofoundry.core.filter_engine; this module only holds the value types.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_DISTANCE_RADIUS = 50  # miles
NEW_USER_WINDOW_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Option catalogs
# ---------------------------------------------------------------------------


class GenderFilter(str, Enum):
    ALL = "all"
    MEN = "men"
    WOMEN = "women"
    NON_BINARY = "non_binary"


class ShowMeFilter(str, Enum):
    EVERYONE = "everyone"
    MEN = "men"
    WOMEN = "women"
    NON_BINARY = "non_binary"


class EducationLevel(str, Enum):
    HIGH_SCHOOL = "high_school"
    SOME_COLLEGE = "some_college"
    BACHELORS = "bachelors"
    MASTERS = "masters"
    DOCTORATE = "doctorate"
    TRADE_SCHOOL = "trade_school"


class SkillSet(str, Enum):
    SOFTWARE_ENGINEERING = "software_engineering"
    PRODUCT_MANAGEMENT = "product_management"
    DESIGN = "design"
    MARKETING = "marketing"
    SALES = "sales"
    FINANCE = "finance"
    OPERATIONS = "operations"
    LEGAL = "legal"
    DATA_SCIENCE = "data_science"
    AI_ML = "ai_ml"
    HARDWARE = "hardware"
    BIOTECH = "biotech"
    BLOCKCHAIN = "blockchain"
    CYBERSECURITY = "cybersecurity"


class Industry(str, Enum):
    FINTECH = "fintech"
    HEALTHTECH = "healthtech"
    EDTECH = "edtech"
    SAAS = "saas"
    ECOMMERCE = "ecommerce"
    MARKETPLACE = "marketplace"
    SOCIAL_MEDIA = "social_media"
    GAMING = "gaming"
    CLIMATETECH = "climatetech"
    BIOTECH = "biotech"
    HARDWARE = "hardware"
    AI = "ai"


class RoleType(str, Enum):
    TECHNICAL_COFOUNDER = "technical_cofounder"
    BUSINESS_COFOUNDER = "business_cofounder"
    PRODUCT_COFOUNDER = "product_cofounder"
    DESIGN_COFOUNDER = "design_cofounder"
    MARKETING_COFOUNDER = "marketing_cofounder"
    OPERATIONS_COFOUNDER = "operations_cofounder"
    ANY_ROLE = "any_role"


class StartupStage(str, Enum):
    IDEA = "idea"
    VALIDATION = "validation"
    MVP = "mvp"
    PRE_SEED = "pre_seed"
    SEED = "seed"
    SERIES_A = "series_a"
    GROWTH = "growth"


class Commitment(str, Enum):
    FULL_TIME = "full_time"
    PART_TIME = "part_time"
    ADVISOR = "advisor"
    WEEKENDS_ONLY = "weekends_only"


class EquityExpectation(str, Enum):
    NEGOTIABLE = "negotiable"
    FIFTY_FIFTY = "fifty_fifty"
    MAJORITY_FOUNDER = "majority_founder"
    MINORITY_COFOUNDER = "minority_cofounder"


class LocationPreference(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"
    HYBRID = "hybrid"


class FundingExperience(str, Enum):
    NONE = "none"
    ANGEL = "angel"
    SEED = "seed"
    SERIES_A_PLUS = "series_a_plus"
    BOOTSTRAPPED = "bootstrapped"
    EXIT_EXPERIENCE = "exit_experience"


class InvestmentCapacity(str, Enum):
    NONE = "none"
    UP_TO_10K = "1k_10k"
    UP_TO_50K = "10k_50k"
    UP_TO_100K = "50k_100k"
    OVER_100K = "100k_plus"


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


class AgeRange(BaseModel):
    """Inclusive age bounds, each clamped to 18-99."""

    model_config = ConfigDict(frozen=True)

    min: int = 18
    max: int = 99

    @field_validator("min", "max")
    @classmethod
    def clamp(cls, v: int) -> int:
        return _clamp(v, 18, 99)

    def contains(self, age: int) -> bool:
        return self.min <= age <= self.max


class ExperienceRange(BaseModel):
    """Inclusive years-of-experience bounds, each clamped to 0-50."""

    model_config = ConfigDict(frozen=True)

    min: int = 0
    max: int = 50

    @field_validator("min", "max")
    @classmethod
    def clamp(cls, v: int) -> int:
        return _clamp(v, 0, 50)

    def contains(self, years: int) -> bool:
        return self.min <= years <= self.max


class HeightRange(BaseModel):
    """Inclusive height bounds in inches, each clamped to 48-96 (4'0" to 8'0")."""

    model_config = ConfigDict(frozen=True)

    min_inches: int = 48
    max_inches: int = 96

    @field_validator("min_inches", "max_inches")
    @classmethod
    def clamp(cls, v: int) -> int:
        return _clamp(v, 48, 96)

    def contains(self, height_inches: int) -> bool:
        return self.min_inches <= height_inches <= self.max_inches

    @staticmethod
    def format_height(height_inches: int) -> str:
        return f"{height_inches // 12}'{height_inches % 12}\""

    @staticmethod
    def cm_to_inches(cm: int) -> int:
        return int(cm / 2.54)

    @staticmethod
    def inches_to_cm(inches: int) -> int:
        return int(inches * 2.54)


# ---------------------------------------------------------------------------
# Search filter
# ---------------------------------------------------------------------------


class SearchFilter(BaseModel):
    """Immutable discovery filter. Build a changed copy with with_changes()."""

    model_config = ConfigDict(frozen=True)

    # Location
    distance_radius: int = DEFAULT_DISTANCE_RADIUS  # miles, 1-100
    location_preferences: frozenset[LocationPreference] = frozenset()

    # Demographics
    age_range: AgeRange = Field(default_factory=AgeRange)
    height_range: HeightRange | None = None
    gender: GenderFilter = GenderFilter.ALL
    show_me: ShowMeFilter = ShowMeFilter.EVERYONE

    # Professional background
    experience_range: ExperienceRange | None = None
    education_levels: frozenset[EducationLevel] = frozenset()
    funding_experience: frozenset[FundingExperience] = frozenset()
    investment_capacities: frozenset[InvestmentCapacity] = frozenset()

    # Co-founder matching
    skills_offered: frozenset[SkillSet] = frozenset()
    skills_sought: frozenset[SkillSet] = frozenset()
    industries: frozenset[Industry] = frozenset()
    role_types: frozenset[RoleType] = frozenset()
    startup_stages: frozenset[StartupStage] = frozenset()
    commitment_levels: frozenset[Commitment] = frozenset()
    equity_expectations: frozenset[EquityExpectation] = frozenset()

    # Preferences
    verified_only: bool = False
    funded_only: bool = False
    photos_only: bool = False
    new_users_only: bool = False       # joined in the last 30 days
    active_in_last_days: int | None = None

    # Metadata
    id: str = Field(default_factory=_new_id)
    created_at: datetime = Field(default_factory=_utcnow)
    last_used: datetime = Field(default_factory=_utcnow)

    @field_validator("distance_radius")
    @classmethod
    def clamp_radius(cls, v: int) -> int:
        return _clamp(v, 1, 100)

    @field_validator("active_in_last_days")
    @classmethod
    def positive_days(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("active_in_last_days must be positive")
        return v

    @property
    def active_filter_count(self) -> int:
        from cofoundry.core.filter_engine import active_filter_count

        return active_filter_count(self)

    @property
    def is_default(self) -> bool:
        return self.active_filter_count == 0

    def with_changes(self, **changes) -> SearchFilter:
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return SearchFilter.model_validate(data)

    def reset(self) -> SearchFilter:
        """Return a fresh default filter (new id and timestamps)."""
        return SearchFilter()


class FilterPreset(BaseModel):
    """A named, saved filter the user can re-apply."""

    id: str = Field(default_factory=_new_id)
    name: str
    filter: SearchFilter
    created_at: datetime = Field(default_factory=_utcnow)
    last_used: datetime = Field(default_factory=_utcnow)
    usage_count: int = 0


class SearchHistoryEntry(BaseModel):
    """One executed search and how many candidates it admitted."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    filter: SearchFilter
    timestamp: datetime = Field(default_factory=_utcnow)
    results_count: int
