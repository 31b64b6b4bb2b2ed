"""
Touchpoint sequence representation and fitness evaluation.

A chromosome is an ordered sequence of touchpoint genes.  Each gene
is a channel/content pair scheduled some number of days after the
sequence starts, with a cost and an expected impact.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from loguru import logger

from config import SequenceConfig
from core.contracts import OpportunitySignal, OptimizationConstraints
from core.exceptions import DegenerateOpportunityError


@dataclass(frozen=True)
class TouchpointGene:
    """One touchpoint in a sequence."""

    channel: str
    content: str
    timing: int  # days from sequence start
    cost: float
    expected_impact: float

    def to_dict(self) -> dict:
        return {
            "channel": self.channel,
            "content": self.content,
            "timing": self.timing,
            "cost": self.cost,
            "expected_impact": self.expected_impact,
        }


@dataclass(frozen=True)
class ExpectedOutcome:
    engagement: float = 0.0
    conversion: float = 0.0
    roi: float = 0.0

    def to_dict(self) -> dict:
        return {"engagement": self.engagement, "conversion": self.conversion, "roi": self.roi}


@dataclass(frozen=True)
class SequenceChromosome:
    """
    A candidate touchpoint sequence with its evaluated fitness.
    """

    genes: tuple[TouchpointGene, ...]
    fitness: float = 0.0
    feasible: bool = False
    expected_outcome: ExpectedOutcome = field(default_factory=ExpectedOutcome)

    def __len__(self) -> int:
        return len(self.genes)

    @property
    def total_cost(self) -> float:
        return sum(g.cost for g in self.genes)

    @property
    def total_impact(self) -> float:
        return sum(g.expected_impact for g in self.genes)

    @property
    def total_duration(self) -> int:
        """Days from sequence start to the latest touchpoint."""
        return max((g.timing for g in self.genes), default=0)

    @property
    def channels(self) -> list[str]:
        return [g.channel for g in self.genes]

    def to_dict(self) -> dict:
        return {
            "fitness": self.fitness,
            "feasible": self.feasible,
            "total_cost": self.total_cost,
            "total_duration": self.total_duration,
            "expected_outcome": self.expected_outcome.to_dict(),
            "genes": [g.to_dict() for g in self.genes],
        }


def average_opportunity_score(
    signals: list[OpportunitySignal],
    neutral: float = 50.0,
    strict: bool = False,
) -> float:
    """
    Mean opportunity score of the target population.

    An empty set falls back to ``neutral`` unless ``strict`` is set.
    """
    if not signals:
        if strict:
            raise DegenerateOpportunityError()
        logger.warning(f"No opportunity signals supplied; using neutral score {neutral}")
        return neutral
    return float(np.mean([s.score for s in signals]))


def is_feasible(genes: tuple[TouchpointGene, ...], constraints: OptimizationConstraints) -> bool:
    """
    Hard-constraint check: budget, frequency, channel whitelist, timing bounds.

    Variation operators never repair a sequence; violations are only
    penalised through this flag.
    """
    if sum(g.cost for g in genes) > constraints.max_budget:
        return False
    if len(genes) > constraints.max_frequency:
        return False
    allowed = set(constraints.allowed_channels)
    if allowed and any(g.channel not in allowed for g in genes):
        return False
    return all(constraints.min_timing <= g.timing <= constraints.max_timing for g in genes)


def evaluate(
    genes: tuple[TouchpointGene, ...],
    constraints: OptimizationConstraints,
    avg_opportunity_score: float,
    settings: SequenceConfig | None = None,
) -> SequenceChromosome:
    """
    Score a gene sequence.

    fitness = 0.4 * roi + 0.3 * engagement + 0.3 * conversion, where
    conversion carries a penalty factor when the sequence is infeasible.
    """
    settings = settings or SequenceConfig()
    total_cost = sum(g.cost for g in genes)
    total_impact = sum(g.expected_impact for g in genes)
    feasible = is_feasible(genes, constraints)

    roi = total_impact / total_cost if total_cost > 0 else 0.0
    engagement = min(1.0, total_impact / settings.engagement_scale)
    penalty = 1.0 if feasible else settings.infeasible_penalty
    conversion = engagement * (avg_opportunity_score / 100) * penalty

    return SequenceChromosome(
        genes=genes,
        fitness=0.4 * roi + 0.3 * engagement + 0.3 * conversion,
        feasible=feasible,
        expected_outcome=ExpectedOutcome(engagement=engagement, conversion=conversion, roi=roi),
    )


def random_genes(
    rng: np.random.Generator,
    channels: tuple[str, ...],
    settings: SequenceConfig,
) -> tuple[TouchpointGene, ...]:
    """Draw a random sequence with cumulative timing."""
    n_genes = int(rng.integers(settings.min_genes, settings.max_genes + 1))
    step_lo, step_hi = settings.step_days
    cost_lo, cost_hi = settings.cost_range
    impact_lo, impact_hi = settings.impact_range

    genes = []
    timing = 0
    for _ in range(n_genes):
        timing += int(rng.integers(step_lo, step_hi + 1))
        genes.append(TouchpointGene(
            channel=channels[int(rng.integers(len(channels)))],
            content=settings.content_catalog[int(rng.integers(len(settings.content_catalog)))],
            timing=timing,
            cost=float(rng.uniform(cost_lo, cost_hi)),
            expected_impact=float(rng.uniform(impact_lo, impact_hi)),
        ))
    return tuple(genes)


def sequence_distance(a: SequenceChromosome, b: SequenceChromosome) -> float:
    """Length difference plus 0.1 per aligned position with a different channel."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    distance = abs(len(a) - len(b)) / longest
    for ga, gb in zip(a.genes, b.genes):
        if ga.channel != gb.channel:
            distance += 0.1
    return distance


def population_diversity(population: list[SequenceChromosome]) -> float:
    """Mean pairwise sequence distance."""
    total = 0.0
    comparisons = 0
    for i in range(len(population) - 1):
        for j in range(i + 1, len(population)):
            total += sequence_distance(population[i], population[j])
            comparisons += 1
    return total / comparisons if comparisons else 0.0
