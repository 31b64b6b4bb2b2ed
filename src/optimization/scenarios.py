"""
Scenario planning utilities for budget allocation.

Runs the allocator under several named objective profiles, each of
which derives its own per-channel constraint set from the base
channels, then scores every scenario for risk and feasibility so the
results can be compared side by side.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

import pandas as pd
from loguru import logger

from config import AllocationConfig, ResponseConfig, ScenarioConfig
from core.contracts import Channel, ChannelCategory, ChannelConstraint, check_channels
from core.exceptions import InfeasibleBudgetError
from optimization.allocator import BudgetAllocation, BudgetAllocator


class ScenarioObjective(str, Enum):
    MAX_ROI = "max_roi"
    MAX_REACH = "max_reach"
    BALANCED = "balanced"
    DIGITAL_FIRST = "digital_first"
    FIELD_FOCUSED = "field_focused"


@dataclass(frozen=True)
class ScenarioProfile:
    """Static description of an objective profile."""

    objective: ScenarioObjective
    name: str
    description: str
    risk_minimizing: bool = False
    min_marginal_roi: float | None = None


PROFILES: dict[ScenarioObjective, ScenarioProfile] = {
    ScenarioObjective.MAX_ROI: ScenarioProfile(
        ScenarioObjective.MAX_ROI,
        "Max ROI",
        "Keep every channel inside its optimal response range",
    ),
    ScenarioObjective.MAX_REACH: ScenarioProfile(
        ScenarioObjective.MAX_REACH,
        "Max Reach",
        "Favour low cost-per-reach channels and accept lower marginal returns",
        min_marginal_roi=1.0,
    ),
    ScenarioObjective.BALANCED: ScenarioProfile(
        ScenarioObjective.BALANCED,
        "Balanced Growth",
        "Limit every channel to +/-20% of current budget",
        risk_minimizing=True,
    ),
    ScenarioObjective.DIGITAL_FIRST: ScenarioProfile(
        ScenarioObjective.DIGITAL_FIRST,
        "Digital-First",
        "Grow digital channels by at least 20% and hold the rest near current spend",
    ),
    ScenarioObjective.FIELD_FOCUSED: ScenarioProfile(
        ScenarioObjective.FIELD_FOCUSED,
        "Field-Focused",
        "Grow personal-contact channels by at least 15% and cap digital growth",
    ),
}


@dataclass
class OptimizationScenario:
    """
    A scored allocation for one objective profile.
    """

    objective: ScenarioObjective
    name: str
    description: str
    constraints: dict[str, ChannelConstraint] = field(default_factory=dict)
    results: BudgetAllocation | None = None
    risk_score: float = 0.0
    feasibility_score: float = 10.0
    reach_impact: float = 0.0
    feasible: bool = True
    message: str = ""

    @property
    def expected_roi(self) -> float:
        return self.results.expected_roi if self.results else 0.0

    def to_dict(self) -> dict:
        return {
            "objective": self.objective.value,
            "name": self.name,
            "description": self.description,
            "feasible": self.feasible,
            "message": self.message,
            "risk_score": self.risk_score,
            "feasibility_score": self.feasibility_score,
            "reach_impact": self.reach_impact,
            "constraints": {k: v.model_dump() for k, v in self.constraints.items()},
            "results": self.results.to_dict() if self.results else None,
        }


@dataclass(frozen=True)
class ScenarioRecommendation:
    best_roi: OptimizationScenario | None
    most_balanced: OptimizationScenario | None


def _bounded(base: ChannelConstraint, lo: float, hi: float) -> ChannelConstraint:
    """Intersect a derived [lo, hi] range with the base constraint."""
    lo = min(max(lo, base.min_budget), base.max_budget)
    hi = min(max(hi, lo), base.max_budget)
    return ChannelConstraint(min_budget=lo, max_budget=hi)


def derive_constraints(
    objective: ScenarioObjective,
    channels: list[Channel],
) -> dict[str, ChannelConstraint]:
    """Per-channel constraints for an objective profile."""
    derived = {}
    for ch in channels:
        base = ch.constraint
        cur = ch.current_budget
        cat = ch.category

        if objective == ScenarioObjective.MAX_ROI:
            c = _bounded(base, base.min_budget, ch.saturation_point * 0.85)
        elif objective == ScenarioObjective.MAX_REACH:
            if cat in (ChannelCategory.PERSONAL, ChannelCategory.EVENT):
                c = _bounded(base, base.min_budget, cur * 1.1)
            else:
                c = base
        elif objective == ScenarioObjective.BALANCED:
            c = _bounded(base, cur * 0.8, cur * 1.2)
        elif objective == ScenarioObjective.DIGITAL_FIRST:
            if cat == ChannelCategory.DIGITAL:
                c = _bounded(base, cur * 1.2, base.max_budget)
            else:
                c = _bounded(base, base.min_budget, cur * 1.05)
        elif objective == ScenarioObjective.FIELD_FOCUSED:
            if cat == ChannelCategory.PERSONAL:
                c = _bounded(base, cur * 1.15, base.max_budget)
            elif cat in (ChannelCategory.DIGITAL, ChannelCategory.NON_PERSONAL):
                c = _bounded(base, base.min_budget, cur * 1.1)
            else:
                c = base
        else:
            c = base

        derived[ch.id] = c
    return derived


class ScenarioEngine:
    """
    Run and score the allocator under named objective profiles.

    Example:
        >>> engine = ScenarioEngine()
        >>> scenarios = engine.run(channels, total_budget=50_000_000)
        >>> engine.recommend(scenarios).most_balanced.name
        'Balanced Growth'
    """

    def __init__(
        self,
        settings: ScenarioConfig | None = None,
        allocation_settings: AllocationConfig | None = None,
        response_settings: ResponseConfig | None = None,
    ):
        self.settings = settings or ScenarioConfig()
        self.allocation_settings = (allocation_settings or AllocationConfig()).check()
        self.response_settings = response_settings

    def _allocator(self, profile: ScenarioProfile) -> BudgetAllocator:
        settings = self.allocation_settings
        if profile.min_marginal_roi is not None:
            settings = settings.model_copy(update={"min_marginal_roi": profile.min_marginal_roi})
        return BudgetAllocator(settings=settings, response_settings=self.response_settings)

    def run_one(
        self,
        objective: ScenarioObjective,
        channels: list[Channel],
        total_budget: float,
    ) -> OptimizationScenario:
        profile = PROFILES[objective]
        constraints = derive_constraints(objective, channels)
        scenario = OptimizationScenario(
            objective=objective,
            name=profile.name,
            description=profile.description,
            constraints=constraints,
        )

        allocator = self._allocator(profile)
        try:
            scenario.results = allocator.allocate(channels, total_budget, constraints)
        except InfeasibleBudgetError as exc:
            logger.warning(f"Scenario '{profile.name}' is infeasible: {exc}")
            scenario.feasible = False
            scenario.message = str(exc)
            scenario.risk_score = 10.0
            scenario.feasibility_score = 0.0
            return scenario

        scenario.risk_score = self.risk_score(scenario.results, total_budget)
        scenario.feasibility_score = self.feasibility_score(profile, channels, constraints)
        scenario.reach_impact = sum(
            allocator.estimate_reach(ch, scenario.results.for_channel(ch.id).recommended_budget)
            - allocator.estimate_reach(ch, ch.current_budget)
            for ch in channels
        )
        return scenario

    def run(
        self,
        channels: list[Channel],
        total_budget: float,
        objectives: list[ScenarioObjective] | None = None,
    ) -> list[OptimizationScenario]:
        """
        Run every objective profile against the same channels.

        Profiles are independent; with ``max_workers > 1`` they run on a
        thread pool.  Result order always follows ``objectives``.
        """
        check_channels(channels)
        objectives = objectives or list(ScenarioObjective)

        logger.info(f"Running {len(objectives)} scenarios for budget {total_budget:,.0f}")

        if self.settings.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
                scenarios = list(pool.map(
                    lambda obj: self.run_one(obj, channels, total_budget), objectives,
                ))
        else:
            scenarios = [self.run_one(obj, channels, total_budget) for obj in objectives]

        rec = self.recommend(scenarios)
        if rec.best_roi is not None:
            logger.info(
                f"Best ROI: {rec.best_roi.name} ({rec.best_roi.expected_roi:.2f}); "
                f"most balanced: {rec.most_balanced.name}"
            )
        return scenarios

    def risk_score(self, allocation: BudgetAllocation, total_budget: float) -> float:
        """0-10 risk: concentration, saturation and change magnitude."""
        s = self.settings
        risk = 0.0
        if any(a.recommended_budget > total_budget * s.concentration_threshold
               for a in allocation.allocations):
            risk += 3
        for a in allocation.allocations:
            if a.saturation_level > s.saturation_threshold * 100:
                risk += 2
            if abs(a.change_pct) > s.change_threshold * 100:
                risk += 1
        return min(risk, 10.0)

    def feasibility_score(
        self,
        profile: ScenarioProfile,
        channels: list[Channel],
        constraints: dict[str, ChannelConstraint],
    ) -> float:
        """0-10 feasibility, penalising tight and fixed constraints."""
        score = 10.0
        for ch in channels:
            c = constraints[ch.id]
            limit = c.growth_limit(ch.current_budget)
            if limit is not None and limit < self.settings.growth_limit_threshold:
                score -= 2
            if c.is_fixed:
                score -= 1
        if profile.risk_minimizing:
            score -= 1
        return max(score, 0.0)

    def balance_score(self, scenario: OptimizationScenario) -> float:
        s = self.settings
        return (
            s.roi_weight * scenario.expected_roi
            + s.risk_weight * (10 - scenario.risk_score)
            + s.feasibility_weight * scenario.feasibility_score
        )

    def recommend(self, scenarios: list[OptimizationScenario]) -> ScenarioRecommendation:
        feasible = [s for s in scenarios if s.feasible]
        if not feasible:
            return ScenarioRecommendation(best_roi=None, most_balanced=None)
        return ScenarioRecommendation(
            best_roi=max(feasible, key=lambda s: s.expected_roi),
            most_balanced=max(feasible, key=self.balance_score),
        )


def compare_scenarios(
    scenarios: list[OptimizationScenario],
    engine: ScenarioEngine | None = None,
) -> pd.DataFrame:
    """
    Create a comparison table of scenarios.

    Args:
        scenarios: Scored scenarios
        engine: Engine used for the balance score (defaults to a new one)

    Returns:
        DataFrame with one row per scenario and one spend column per channel
    """
    engine = engine or ScenarioEngine()
    records = []

    all_channels = set()
    for s in scenarios:
        all_channels.update(s.constraints.keys())

    for scenario in scenarios:
        res = scenario.results
        record = {
            "scenario": scenario.name,
            "objective": scenario.objective.value,
            "feasible": scenario.feasible,
            "total_allocated": res.total_allocated if res else 0.0,
            "expected_roi": scenario.expected_roi,
            "incremental_revenue": res.incremental_revenue if res else 0.0,
            "reach_impact": scenario.reach_impact,
            "risk_score": scenario.risk_score,
            "feasibility_score": scenario.feasibility_score,
            "balance_score": engine.balance_score(scenario),
        }

        for channel in sorted(all_channels):
            record[f"{channel}_spend"] = res.recommended.get(channel, 0.0) if res else 0.0

        records.append(record)

    return pd.DataFrame(records)


def run_scenarios(
    channels: list[Channel],
    total_budget: float,
    *,
    settings: ScenarioConfig | None = None,
    allocation_settings: AllocationConfig | None = None,
) -> list[OptimizationScenario]:
    """Convenience wrapper: run all five profiles with default settings."""
    engine = ScenarioEngine(settings=settings, allocation_settings=allocation_settings)
    return engine.run(channels, total_budget)


def recommend_scenarios(
    scenarios: list[OptimizationScenario],
    settings: ScenarioConfig | None = None,
) -> ScenarioRecommendation:
    """Pick the best-ROI and most balanced feasible scenarios."""
    return ScenarioEngine(settings=settings).recommend(scenarios)
