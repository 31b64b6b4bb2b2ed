"""
Canonical input contracts for Promo-Opt.

These Pydantic models define every value the optimization core accepts
from the surrounding application: channels with their response curves
and spend constraints, opportunity signals, and genetic-algorithm run
configuration.

All contracts are frozen.  A run treats its inputs as read-only value
objects, which is what makes it safe to evaluate scenarios or GA
fitness in parallel over the same channel set.

Design principles:
  - Money amounts are floats in the currency of the project.
  - Field-level checks (non-negative spend, rates in [0, 1]) are done by
    pydantic at construction time.
  - Domain checks that involve more than one field (min <= max,
    positive saturation point, unique ids) raise the typed errors from
    ``core.exceptions`` via ``check_channel`` / ``check_channels``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from core.exceptions import (
    EmptyPopulationError,
    InvalidChannelError,
    InvalidConfigurationError,
)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ChannelCategory(str, Enum):
    PERSONAL = "personal"
    DIGITAL = "digital"
    EVENT = "event"
    NON_PERSONAL = "non_personal"


class ChannelMedium(str, Enum):
    FIELD = "field"
    EMAIL = "email"
    WEB = "web"
    SPEAKER_PROGRAM = "speaker_program"
    CONFERENCE = "conference"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Channel contracts
# ---------------------------------------------------------------------------

class CurvePoint(BaseModel):
    """One observed (spend, response) sample on a response curve."""

    spend: float = Field(ge=0)
    response: float

    class Config:
        frozen = True


class ResponseCurve(BaseModel):
    """
    Sampled response curve plus its saturation point.

    Points are kept ordered by spend.  The saturation point is either
    supplied directly or derived from the samples with ``from_points``.
    """

    points: tuple[CurvePoint, ...] = ()
    saturation_point: float

    class Config:
        frozen = True

    @field_validator("points")
    @classmethod
    def _sort_points(cls, v: tuple[CurvePoint, ...]) -> tuple[CurvePoint, ...]:
        return tuple(sorted(v, key=lambda p: p.spend))

    @classmethod
    def from_points(
        cls,
        points: list[CurvePoint] | list[tuple[float, float]],
        marginal_threshold: float = 1.0,
    ) -> "ResponseCurve":
        """
        Build a curve and derive its saturation point from the samples.

        The saturation point is the first sampled spend at which the
        marginal response (response gained per unit of spend) falls
        below ``marginal_threshold``; the largest sampled spend if it
        never does.
        """
        parsed = [
            p if isinstance(p, CurvePoint) else CurvePoint(spend=p[0], response=p[1])
            for p in points
        ]
        parsed.sort(key=lambda p: p.spend)
        if not parsed:
            raise InvalidChannelError("Cannot derive a saturation point from an empty curve")

        saturation = parsed[-1].spend
        for prev, cur in zip(parsed, parsed[1:]):
            d_spend = cur.spend - prev.spend
            if d_spend <= 0:
                continue
            if (cur.response - prev.response) / d_spend < marginal_threshold:
                saturation = cur.spend
                break

        return cls(points=tuple(parsed), saturation_point=saturation)


class ChannelConstraint(BaseModel):
    """Hard spend bounds for a single channel."""

    min_budget: float = Field(default=0.0, ge=0)
    max_budget: float = Field(ge=0)

    class Config:
        frozen = True

    @property
    def is_fixed(self) -> bool:
        return self.min_budget == self.max_budget

    def growth_limit(self, current_budget: float) -> float | None:
        """Maximum allowed growth vs current budget, as a fraction."""
        if current_budget <= 0:
            return None
        return (self.max_budget - current_budget) / current_budget


class Channel(BaseModel):
    """A promotional channel competing for budget."""

    id: str = Field(min_length=1, max_length=120)
    name: str = ""
    category: ChannelCategory
    medium: ChannelMedium = ChannelMedium.OTHER
    current_budget: float = Field(default=0.0, ge=0)
    actual_spend: float = Field(default=0.0, ge=0)
    base_roi: float
    base_marginal_roi: float | None = None
    response_curve: ResponseCurve
    constraint: ChannelConstraint

    class Config:
        frozen = True

    @property
    def saturation_point(self) -> float:
        return self.response_curve.saturation_point

    @property
    def display_name(self) -> str:
        return self.name or self.id


def check_channel(channel: Channel) -> Channel:
    """Reject a misconfigured channel with ``InvalidChannelError``."""
    if channel.saturation_point <= 0:
        raise InvalidChannelError(
            f"Channel '{channel.id}' has non-positive saturation point "
            f"{channel.saturation_point}",
            channel_id=channel.id,
        )
    check_constraint(channel.id, channel.constraint)
    return channel


def check_constraint(channel_id: str, constraint: ChannelConstraint) -> ChannelConstraint:
    if constraint.min_budget > constraint.max_budget:
        raise InvalidChannelError(
            f"Channel '{channel_id}' constraint min {constraint.min_budget:,.0f} "
            f"exceeds max {constraint.max_budget:,.0f}",
            channel_id=channel_id,
        )
    return constraint


def check_channels(channels: list[Channel]) -> list[Channel]:
    """Validate every channel and reject duplicate ids."""
    seen: set[str] = set()
    for channel in channels:
        if channel.id in seen:
            raise InvalidChannelError(
                f"Duplicate channel id '{channel.id}'", channel_id=channel.id,
            )
        seen.add(channel.id)
        check_channel(channel)
    return channels


# ---------------------------------------------------------------------------
# Sequence optimization contracts
# ---------------------------------------------------------------------------

class OpportunitySignal(BaseModel):
    """Opportunity score (0-100) for one member of the target population."""

    entity_id: str
    score: float = Field(ge=0, le=100)

    class Config:
        frozen = True


class OptimizationConstraints(BaseModel):
    """Hard resource constraints a touchpoint sequence must satisfy."""

    max_budget: float = Field(default=5000.0, ge=0)
    max_frequency: int = Field(default=10, ge=1, description="Maximum touchpoints per sequence")
    allowed_channels: tuple[str, ...] = Field(
        default=(), description="Channel whitelist; empty means the full catalog",
    )
    min_timing: int = Field(default=1, ge=0, description="Earliest touchpoint day")
    max_timing: int = Field(default=180, ge=0, description="Latest touchpoint day")

    class Config:
        frozen = True


class GAConfig(BaseModel):
    """Genetic-algorithm run parameters."""

    population_size: int = 100
    generations: int = 50
    mutation_rate: float = Field(default=0.1, ge=0, le=1)
    crossover_rate: float = Field(default=0.7, ge=0, le=1)
    elitism_rate: float = Field(default=0.1, ge=0, le=1)
    tournament_size: int = Field(default=5, ge=1)
    constraints: OptimizationConstraints = Field(default_factory=OptimizationConstraints)
    seed: int | None = None

    class Config:
        frozen = True

    def check(self) -> "GAConfig":
        if self.population_size <= 0 or self.generations <= 0:
            raise EmptyPopulationError(
                f"population_size={self.population_size} and "
                f"generations={self.generations} must both be positive"
            )
        if self.constraints.min_timing > self.constraints.max_timing:
            raise InvalidConfigurationError(
                f"min_timing={self.constraints.min_timing} exceeds "
                f"max_timing={self.constraints.max_timing}",
                setting="min_timing",
            )
        return self

    @property
    def elite_count(self) -> int:
        return max(1, int(self.elitism_rate * self.population_size))
