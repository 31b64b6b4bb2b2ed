"""
Budget allocation across channels by marginal ROI.

Distributes a fixed budget so that every channel first receives its
constraint minimum, then repeatedly gives the next increment to the
channel with the highest marginal ROI at its current allocation level,
until the budget runs out or no channel clears the acceptance threshold.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import pandas as pd
from loguru import logger

from config import AllocationConfig, ResponseConfig
from core.contracts import Channel, ChannelConstraint, check_channels, check_constraint
from core.exceptions import InfeasibleBudgetError, InvalidChannelError
from optimization.attribution import ImpactAttributionModel
from optimization.response_curves import ResponseCurveModel, ResponseModel


QUARTERS = ("Q1", "Q2", "Q3", "Q4")


@dataclass(frozen=True)
class QuarterlyAllocation:
    """One quarter's share of a channel allocation."""

    quarter: str
    budget: float
    reach: float
    touchpoints: float
    expected_outcome: float

    def to_dict(self) -> dict:
        return {
            "quarter": self.quarter,
            "budget": self.budget,
            "reach": self.reach,
            "touchpoints": self.touchpoints,
            "expected_outcome": self.expected_outcome,
        }


@dataclass(frozen=True)
class ChannelAllocation:
    """
    Recommended spend for one channel plus its projected metrics.
    """

    channel_id: str
    category: str
    current_budget: float
    recommended_budget: float
    min_budget: float
    max_budget: float
    change_pct: float
    current_roi: float
    expected_roi: float
    expected_marginal_roi: float
    saturation_level: float
    efficiency: float
    estimated_reach: float
    quarterly: tuple[QuarterlyAllocation, ...] = ()

    # Attribution
    incremental_impact: float = 0.0
    synergy_effect: float = 1.0
    confidence: float | None = None

    @property
    def change(self) -> float:
        return self.recommended_budget - self.current_budget

    @property
    def expected_return(self) -> float:
        return self.recommended_budget * self.expected_roi

    def to_dict(self) -> dict:
        return {
            "channel_id": self.channel_id,
            "category": self.category,
            "current_budget": self.current_budget,
            "recommended_budget": self.recommended_budget,
            "min_budget": self.min_budget,
            "max_budget": self.max_budget,
            "change_pct": self.change_pct,
            "current_roi": self.current_roi,
            "expected_roi": self.expected_roi,
            "expected_marginal_roi": self.expected_marginal_roi,
            "saturation_level": self.saturation_level,
            "efficiency": self.efficiency,
            "estimated_reach": self.estimated_reach,
            "incremental_impact": self.incremental_impact,
            "synergy_effect": self.synergy_effect,
            "confidence": self.confidence,
            "quarterly": [q.to_dict() for q in self.quarterly],
        }


@dataclass(frozen=True)
class BudgetAllocation:
    """
    Results from budget allocation.
    """

    total_budget: float
    total_allocated: float
    allocations: tuple[ChannelAllocation, ...]

    # Portfolio metrics
    expected_roi: float = 0.0
    expected_marginal_roi: float = 0.0
    total_expected_return: float = 0.0
    incremental_revenue: float = 0.0

    # Against current budgets
    current_roi: float = 0.0
    roi_improvement: float = 0.0

    # Run details
    iterations: int = 0
    stop_reason: str = ""

    @property
    def unallocated(self) -> float:
        return self.total_budget - self.total_allocated

    @property
    def recommended(self) -> dict[str, float]:
        return {a.channel_id: a.recommended_budget for a in self.allocations}

    def for_channel(self, channel_id: str) -> ChannelAllocation:
        for a in self.allocations:
            if a.channel_id == channel_id:
                return a
        raise KeyError(channel_id)

    def to_dict(self) -> dict:
        return {
            "total_budget": self.total_budget,
            "total_allocated": self.total_allocated,
            "unallocated": self.unallocated,
            "expected_roi": self.expected_roi,
            "expected_marginal_roi": self.expected_marginal_roi,
            "total_expected_return": self.total_expected_return,
            "incremental_revenue": self.incremental_revenue,
            "current_roi": self.current_roi,
            "roi_improvement": self.roi_improvement,
            "iterations": self.iterations,
            "stop_reason": self.stop_reason,
            "allocations": [a.to_dict() for a in self.allocations],
        }

    def to_frame(self) -> pd.DataFrame:
        """Per-channel metrics table (quarterly detail omitted)."""
        rows = []
        for a in self.allocations:
            row = a.to_dict()
            row.pop("quarterly")
            rows.append(row)
        return pd.DataFrame(rows)


@dataclass(frozen=True)
class ScenarioSimulation:
    """Projected outcome of a caller-supplied set of channel budgets."""

    budgets: dict[str, float]
    total_budget: float
    current_roi: float
    projected_roi: float
    roi_change: float
    reach_impact: float
    allocations: tuple[ChannelAllocation, ...] = ()

    def to_dict(self) -> dict:
        return {
            "budgets": self.budgets,
            "total_budget": self.total_budget,
            "current_roi": self.current_roi,
            "projected_roi": self.projected_roi,
            "roi_change": self.roi_change,
            "reach_impact": self.reach_impact,
            "allocations": [a.to_dict() for a in self.allocations],
        }


@dataclass(frozen=True)
class ImplementationStep:
    """One phase of the rollout from current to recommended budgets."""

    phase: int
    description: str
    timeline: str
    budget_changes: dict[str, float] = field(default_factory=dict)
    expected_impact: float = 0.0

    def to_dict(self) -> dict:
        return {
            "phase": self.phase,
            "description": self.description,
            "timeline": self.timeline,
            "budget_changes": self.budget_changes,
            "expected_impact": self.expected_impact,
        }


class BudgetAllocator:
    """
    Constrained greedy allocator.

    Example:
        >>> allocator = BudgetAllocator()
        >>> result = allocator.allocate(channels, total_budget=50_000_000)
        >>> result.recommended
        {'field': 31_000_000.0, 'digital': 12_000_000.0, ...}
    """

    def __init__(
        self,
        response_model: ResponseModel | None = None,
        attribution_model: ImpactAttributionModel | None = None,
        settings: AllocationConfig | None = None,
        response_settings: ResponseConfig | None = None,
    ):
        """
        Initialize allocator.

        Args:
            response_model: Object providing roi() and marginal_roi();
                defaults to the piecewise ResponseCurveModel
            attribution_model: Impact attribution used for per-channel
                incremental impact and synergy reporting
            settings: Allocation increments, thresholds and lookups
            response_settings: Settings for the default response model
        """
        self.settings = (settings or AllocationConfig()).check()
        curve_model = ResponseCurveModel(response_settings)
        self.response_model = response_model or curve_model
        self.attribution_model = attribution_model or ImpactAttributionModel(self.response_model)

    def _resolve_constraints(
        self,
        channels: list[Channel],
        overrides: dict[str, ChannelConstraint] | None,
    ) -> dict[str, ChannelConstraint]:
        known = {c.id for c in channels}
        for channel_id in (overrides or {}):
            if channel_id not in known:
                raise InvalidChannelError(
                    f"Constraint given for unknown channel '{channel_id}'",
                    channel_id=channel_id,
                )

        bounds = {}
        for channel in channels:
            constraint = (overrides or {}).get(channel.id, channel.constraint)
            bounds[channel.id] = check_constraint(channel.id, constraint)
        return bounds

    def allocate(
        self,
        channels: list[Channel],
        total_budget: float,
        constraints: dict[str, ChannelConstraint] | None = None,
    ) -> BudgetAllocation:
        """
        Allocate ``total_budget`` across ``channels``.

        Args:
            channels: Channels competing for budget
            total_budget: Budget to distribute
            constraints: Optional per-channel overrides of channel.constraint

        Returns:
            BudgetAllocation with per-channel and portfolio metrics

        Raises:
            InvalidChannelError: misconfigured channel or constraint
            InfeasibleBudgetError: channel minimums exceed the budget
        """
        check_channels(channels)
        if total_budget < 0:
            raise InfeasibleBudgetError(
                f"Total budget must be non-negative, got {total_budget:,.0f}",
                total_budget=total_budget,
            )

        bounds = self._resolve_constraints(channels, constraints)
        required = sum(b.min_budget for b in bounds.values())
        if required > total_budget:
            raise InfeasibleBudgetError(
                f"Channel minimums ({required:,.0f}) exceed total budget ({total_budget:,.0f})",
                total_budget=total_budget,
                required=required,
            )

        # Rank by marginal ROI at current spend
        ranked = sorted(
            channels,
            key=lambda c: self.response_model.marginal_roi(c, c.current_budget),
            reverse=True,
        )

        logger.info(
            f"Allocating {total_budget:,.0f} across {len(channels)} channels "
            f"(floor {required:,.0f})"
        )

        # Floor pass
        allocation = {c.id: bounds[c.id].min_budget for c in ranked}
        remaining = total_budget - required

        # Greedy growth pass
        iterations = 0
        stop_reason = "budget_exhausted"
        while remaining >= self.settings.min_remaining:
            if remaining <= 0:
                break
            if iterations >= self.settings.max_iterations:
                stop_reason = "max_iterations"
                break

            best: Channel | None = None
            best_marginal = float("-inf")
            for channel in ranked:
                if allocation[channel.id] >= bounds[channel.id].max_budget:
                    continue
                marginal = self.response_model.marginal_roi(channel, allocation[channel.id])
                if marginal > best_marginal:
                    best, best_marginal = channel, marginal

            if best is None:
                stop_reason = "all_channels_at_max"
                break
            if best_marginal < self.settings.min_marginal_roi:
                stop_reason = "below_min_marginal_roi"
                break

            headroom = bounds[best.id].max_budget - allocation[best.id]
            step = min(self.settings.increment, remaining, headroom)
            if step <= 0:
                break
            allocation[best.id] += step
            remaining -= step
            iterations += 1
            logger.debug(
                f"  +{step:,.0f} -> {best.id} (marginal ROI {best_marginal:.3f}, "
                f"remaining {remaining:,.0f})"
            )

        impacts = self.attribution_model.attribute_all(channels)
        channel_allocations = tuple(
            self._finalize_channel(c, allocation[c.id], bounds[c.id], impacts[c.id])
            for c in ranked
        )
        result = self._portfolio(total_budget, channel_allocations, iterations, stop_reason)

        logger.info(
            f"Allocation complete ({stop_reason}). Allocated {result.total_allocated:,.0f}, "
            f"expected ROI {result.expected_roi:.2f}, "
            f"incremental revenue {result.incremental_revenue:,.0f}"
        )
        return result

    def simulate(
        self,
        channels: list[Channel],
        budgets: dict[str, float],
    ) -> ScenarioSimulation:
        """
        Project ROI and reach for an explicit set of budgets.

        Channels missing from ``budgets`` keep their current budget.
        Constraint bounds are reported but not enforced.

        Args:
            channels: Channel portfolio
            budgets: Budget per channel id

        Returns:
            ScenarioSimulation comparing the budgets with current spend
        """
        check_channels(channels)
        known = {c.id for c in channels}
        for channel_id, budget in budgets.items():
            if channel_id not in known:
                raise InvalidChannelError(
                    f"Budget given for unknown channel '{channel_id}'",
                    channel_id=channel_id,
                )
            if budget < 0:
                raise InfeasibleBudgetError(
                    f"Budget for '{channel_id}' must be non-negative, got {budget:,.0f}",
                    total_budget=budget,
                    required=0.0,
                )

        impacts = self.attribution_model.attribute_all(channels)
        allocations = tuple(
            self._finalize_channel(
                c,
                budgets.get(c.id, c.current_budget),
                check_constraint(c.id, c.constraint),
                impacts[c.id],
            )
            for c in channels
        )

        total = sum(a.recommended_budget for a in allocations)
        projected_roi = sum(a.expected_return for a in allocations) / total if total > 0 else 0.0
        current_roi = self._current_roi(allocations)
        roi_change = (projected_roi - current_roi) / current_roi * 100 if current_roi > 0 else 0.0
        reach_impact = sum(
            a.estimated_reach - self.estimate_reach(c, c.current_budget)
            for c, a in zip(channels, allocations)
        )

        logger.info(
            f"Simulated {len(budgets)} budget change(s): ROI {current_roi:.2f} -> "
            f"{projected_roi:.2f} ({roi_change:+.1f}%), reach {reach_impact:+,.0f}"
        )
        return ScenarioSimulation(
            budgets={a.channel_id: a.recommended_budget for a in allocations},
            total_budget=total,
            current_roi=current_roi,
            projected_roi=projected_roi,
            roi_change=roi_change,
            reach_impact=reach_impact,
            allocations=allocations,
        )

    def _finalize_channel(self, channel, budget, constraint, impact) -> ChannelAllocation:
        s = self.settings
        current = channel.current_budget
        if current > 0:
            change_pct = (budget - current) / current * 100
        else:
            change_pct = 0.0 if budget == 0 else 100.0

        roi = self.response_model.roi(channel, budget)
        saturation = budget / channel.saturation_point
        reach = self.estimate_reach(channel, budget)
        quarterly = tuple(
            QuarterlyAllocation(
                quarter=quarter,
                budget=budget * weight,
                reach=reach * weight,
                touchpoints=reach * weight * s.touchpoints_per_reach.get(channel.category.value, 1.0),
                expected_outcome=budget * weight * roi,
            )
            for quarter, weight in zip(QUARTERS, s.quarterly_weights)
        )

        return ChannelAllocation(
            channel_id=channel.id,
            category=channel.category.value,
            current_budget=current,
            recommended_budget=budget,
            min_budget=constraint.min_budget,
            max_budget=constraint.max_budget,
            change_pct=change_pct,
            current_roi=self.response_model.roi(channel, current),
            expected_roi=roi,
            expected_marginal_roi=self.response_model.marginal_roi(channel, budget),
            saturation_level=saturation * 100,
            efficiency=roi * (1 - min(saturation, 1.0)),
            estimated_reach=reach,
            quarterly=quarterly,
            incremental_impact=impact.incremental_impact,
            synergy_effect=impact.synergy_effect,
            confidence=impact.confidence,
        )

    def estimate_reach(self, channel: Channel, budget: float) -> float:
        """Category cost-per-reach lookup, dampened below 70% of saturation."""
        cost = self.settings.cost_per_reach.get(channel.category.value)
        if not cost or budget <= 0:
            return 0.0
        dampening = min(1.0, budget / (channel.saturation_point * self.settings.reach_dampening_ratio))
        return budget / cost * dampening

    @staticmethod
    def _current_roi(allocations) -> float:
        """Spend-weighted ROI of the current budgets."""
        current_total = sum(a.current_budget for a in allocations)
        if current_total <= 0:
            return 0.0
        return sum(a.current_budget * a.current_roi for a in allocations) / current_total

    def _portfolio(self, total_budget, allocations, iterations, stop_reason) -> BudgetAllocation:
        total_allocated = sum(a.recommended_budget for a in allocations)
        total_return = sum(a.expected_return for a in allocations)

        if total_allocated > 0:
            expected_roi = total_return / total_allocated
            expected_mroi = sum(
                a.recommended_budget * a.expected_marginal_roi for a in allocations
            ) / total_allocated
        else:
            expected_roi = 0.0
            expected_mroi = 0.0

        current_roi = self._current_roi(allocations)
        if current_roi > 0:
            roi_improvement = (expected_roi - current_roi) / current_roi * 100
        else:
            roi_improvement = 0.0

        return BudgetAllocation(
            total_budget=total_budget,
            total_allocated=total_allocated,
            allocations=allocations,
            expected_roi=expected_roi,
            expected_marginal_roi=expected_mroi,
            total_expected_return=total_return,
            incremental_revenue=total_return - total_allocated * self.settings.baseline_roi,
            current_roi=current_roi,
            roi_improvement=roi_improvement,
            iterations=iterations,
            stop_reason=stop_reason,
        )


def build_implementation_plan(
    allocation: BudgetAllocation,
    major_change_threshold: float = 0.2,
) -> list[ImplementationStep]:
    """
    Phase the move from current to recommended budgets.

    Phase 1 collects small changes that improve ROI, phase 2 the large
    reallocations, phase 3 is ongoing monitoring with no budget changes.
    """
    quick_wins: dict[str, float] = {}
    major: dict[str, float] = {}
    for a in allocation.allocations:
        if abs(a.change) >= a.current_budget * major_change_threshold:
            major[a.channel_id] = a.change
        elif a.expected_roi > a.current_roi:
            quick_wins[a.channel_id] = a.change

    def phase_impact(changes: dict[str, float]) -> float:
        by_id = {a.channel_id: a for a in allocation.allocations}
        weight = sum(abs(v) for v in changes.values())
        if weight <= 0:
            return 0.0
        return sum(
            abs(v) * (by_id[ch].expected_roi - by_id[ch].current_roi)
            for ch, v in changes.items()
        ) / weight

    steps = []
    if quick_wins:
        steps.append(ImplementationStep(
            phase=1,
            description="Quick wins - minor adjustments with immediate impact",
            timeline="0-30 days",
            budget_changes=quick_wins,
            expected_impact=phase_impact(quick_wins),
        ))
    if major:
        steps.append(ImplementationStep(
            phase=2,
            description="Strategic reallocation - significant budget shifts",
            timeline="30-60 days",
            budget_changes=major,
            expected_impact=phase_impact(major),
        ))
    steps.append(ImplementationStep(
        phase=3,
        description="Continuous optimization - monitor and adjust",
        timeline="60-90 days",
    ))
    return steps


def allocate_budget(
    channels: list[Channel],
    total_budget: float,
    constraints: dict[str, ChannelConstraint] | None = None,
    *,
    response_model: ResponseModel | None = None,
    settings: AllocationConfig | None = None,
    response_settings: ResponseConfig | None = None,
) -> BudgetAllocation:
    """
    Convenience function for a single allocation run.

    Args:
        channels: Channels competing for budget
        total_budget: Budget to distribute
        constraints: Optional per-channel constraint overrides
        response_model: Optional custom response model
        settings: Allocation settings

    Returns:
        BudgetAllocation
    """
    allocator = BudgetAllocator(
        response_model=response_model,
        settings=settings,
        response_settings=response_settings,
    )
    return allocator.allocate(channels, total_budget, constraints)


def simulate_budgets(
    channels: list[Channel],
    budgets: dict[str, float],
    *,
    response_model: ResponseModel | None = None,
    settings: AllocationConfig | None = None,
) -> ScenarioSimulation:
    """Convenience function for a single what-if projection."""
    allocator = BudgetAllocator(response_model=response_model, settings=settings)
    return allocator.simulate(channels, budgets)
