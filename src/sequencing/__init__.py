"""
Touchpoint sequence optimization for Promo-Opt.
"""

from sequencing.chromosome import (
    ExpectedOutcome,
    SequenceChromosome,
    TouchpointGene,
    average_opportunity_score,
    evaluate,
    is_feasible,
    population_diversity,
    random_genes,
    sequence_distance,
)
from sequencing.genetic import (
    GenerationStats,
    GeneticSequenceOptimizer,
    SequenceOptimizationResult,
    optimize_sequence,
)

__all__ = [
    "ExpectedOutcome",
    "SequenceChromosome",
    "TouchpointGene",
    "average_opportunity_score",
    "evaluate",
    "is_feasible",
    "population_diversity",
    "random_genes",
    "sequence_distance",
    "GenerationStats",
    "GeneticSequenceOptimizer",
    "SequenceOptimizationResult",
    "optimize_sequence",
]
