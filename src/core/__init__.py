"""
Core framework module for Promo-Opt.

Provides the canonical input contracts and exception types that every
optimizer in the package builds on.
"""

from core.contracts import (
    Channel,
    ChannelCategory,
    ChannelConstraint,
    ChannelMedium,
    CurvePoint,
    GAConfig,
    OpportunitySignal,
    OptimizationConstraints,
    ResponseCurve,
    check_channel,
    check_channels,
    check_constraint,
)
from core.exceptions import (
    PromoOptError,
    InvalidChannelError,
    InfeasibleBudgetError,
    EmptyPopulationError,
    DegenerateOpportunityError,
    InvalidConfigurationError,
)

__all__ = [
    "Channel",
    "ChannelCategory",
    "ChannelConstraint",
    "ChannelMedium",
    "CurvePoint",
    "GAConfig",
    "OpportunitySignal",
    "OptimizationConstraints",
    "ResponseCurve",
    "check_channel",
    "check_channels",
    "check_constraint",
    "PromoOptError",
    "InvalidChannelError",
    "InfeasibleBudgetError",
    "EmptyPopulationError",
    "DegenerateOpportunityError",
    "InvalidConfigurationError",
]
