"""
Promo-Opt: promotional budget and touchpoint sequence optimization.

Allocates a promotional budget across channels by marginal return,
compares allocation scenarios, and searches multi-channel touchpoint
sequences with a genetic algorithm.

Quickstart::

    from optimization import allocate_budget
    result = allocate_budget(channels, total_budget=50_000_000)
    result.recommended
"""

__version__ = "0.1.0"
