"""
Custom exception types for Promo-Opt.

Every exception carries a machine-readable code so callers can
handle specific failure modes programmatically.
"""


class PromoOptError(Exception):
    """Base exception for all Promo-Opt errors."""

    def __init__(self, message: str, code: str = "PROMO_OPT_ERROR"):
        self.code = code
        super().__init__(message)


class InvalidChannelError(PromoOptError):
    """Raised when a channel or its constraint is misconfigured."""

    def __init__(self, message: str, channel_id: str | None = None):
        self.channel_id = channel_id
        super().__init__(message, code="INVALID_CHANNEL")


class InfeasibleBudgetError(PromoOptError):
    """Raised when the channel minimums cannot be met by the total budget."""

    def __init__(self, message: str, total_budget: float = 0.0, required: float = 0.0):
        self.total_budget = total_budget
        self.required = required
        super().__init__(message, code="INFEASIBLE_BUDGET")


class EmptyPopulationError(PromoOptError):
    """Raised when a GA run is configured with no individuals or no generations."""

    def __init__(self, message: str = "Population size and generations must be positive"):
        super().__init__(message, code="EMPTY_POPULATION")


class DegenerateOpportunityError(PromoOptError):
    """Raised (in strict mode) when no opportunity signals are supplied."""

    def __init__(self, message: str = "Opportunity set is empty"):
        super().__init__(message, code="DEGENERATE_OPPORTUNITY")


class InvalidConfigurationError(PromoOptError):
    """Raised when optimizer settings are out of range."""

    def __init__(self, message: str, setting: str = ""):
        self.setting = setting
        super().__init__(message, code="INVALID_CONFIGURATION")
