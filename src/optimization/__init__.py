"""
Budget optimization layer for Promo-Opt.

Provides the diminishing-returns response model, incremental impact
attribution, the greedy marginal-ROI allocator and scenario comparison.
"""

from optimization.response_curves import (
    ResponseCurveModel,
    ResponseModel,
    find_optimal_spend,
    find_saturation_point,
)
from optimization.attribution import ChannelImpact, ImpactAttributionModel
from optimization.allocator import (
    BudgetAllocation,
    BudgetAllocator,
    ChannelAllocation,
    ImplementationStep,
    QuarterlyAllocation,
    ScenarioSimulation,
    allocate_budget,
    build_implementation_plan,
    simulate_budgets,
)
from optimization.scenarios import (
    OptimizationScenario,
    ScenarioEngine,
    ScenarioObjective,
    ScenarioRecommendation,
    compare_scenarios,
    derive_constraints,
    recommend_scenarios,
    run_scenarios,
)

__all__ = [
    "ResponseCurveModel",
    "ResponseModel",
    "find_optimal_spend",
    "find_saturation_point",
    "ChannelImpact",
    "ImpactAttributionModel",
    "BudgetAllocation",
    "BudgetAllocator",
    "ChannelAllocation",
    "ImplementationStep",
    "QuarterlyAllocation",
    "ScenarioSimulation",
    "allocate_budget",
    "build_implementation_plan",
    "simulate_budgets",
    "OptimizationScenario",
    "ScenarioEngine",
    "ScenarioObjective",
    "ScenarioRecommendation",
    "compare_scenarios",
    "derive_constraints",
    "recommend_scenarios",
    "run_scenarios",
]
