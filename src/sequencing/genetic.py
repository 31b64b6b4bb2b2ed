"""
Genetic algorithm search over multi-channel touchpoint sequences.

Each generation is evaluated, the best ``elitism_rate`` share is copied
unchanged into the next generation, and the remaining slots are filled
with offspring produced by tournament selection, two-point crossover
and single-gene mutation.  The run stops after a fixed number of
generations (or earlier, at a generation boundary, if cancelled) and
returns the top sequences by fitness.

All randomness comes from one injected ``np.random.Generator`` so a run
is reproducible from its seed.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Callable

import numpy as np
import pandas as pd
from loguru import logger

from config import SequenceConfig
from core.contracts import GAConfig, OpportunitySignal
from sequencing.chromosome import (
    SequenceChromosome,
    TouchpointGene,
    average_opportunity_score,
    evaluate,
    population_diversity,
    random_genes,
)


Genome = tuple[TouchpointGene, ...]


@dataclass(frozen=True)
class GenerationStats:
    generation: int
    best_fitness: float
    mean_fitness: float
    feasible_fraction: float

    def to_dict(self) -> dict:
        return {
            "generation": self.generation,
            "best_fitness": self.best_fitness,
            "mean_fitness": self.mean_fitness,
            "feasible_fraction": self.feasible_fraction,
        }


@dataclass
class SequenceOptimizationResult:
    """
    Results from a genetic sequence optimization run.
    """

    top_sequences: list[SequenceChromosome]
    best_fitness: float
    convergence_generation: int
    converged: bool
    improvement_over_baseline: float
    baseline_fitness: float
    generations_run: int
    feasible_fraction: float
    any_feasible: bool
    cancelled: bool = False
    population_diversity: float = 0.0
    history: pd.DataFrame | None = None

    def to_dict(self) -> dict:
        return {
            "top_sequences": [s.to_dict() for s in self.top_sequences],
            "best_fitness": self.best_fitness,
            "convergence_generation": self.convergence_generation,
            "converged": self.converged,
            "improvement_over_baseline": self.improvement_over_baseline,
            "baseline_fitness": self.baseline_fitness,
            "generations_run": self.generations_run,
            "feasible_fraction": self.feasible_fraction,
            "any_feasible": self.any_feasible,
            "cancelled": self.cancelled,
            "population_diversity": self.population_diversity,
        }


class GeneticSequenceOptimizer:
    """
    Population-based search for high-fitness touchpoint sequences.

    Example:
        >>> optimizer = GeneticSequenceOptimizer(GAConfig(seed=7))
        >>> result = optimizer.optimize(signals)
        >>> result.top_sequences[0].total_cost
    """

    def __init__(
        self,
        config: GAConfig,
        settings: SequenceConfig | None = None,
        rng: np.random.Generator | None = None,
    ):
        """
        Initialize optimizer.

        Args:
            config: Run parameters and hard constraints
            settings: Catalogs, gene ranges and convergence detection
            rng: Random source; defaults to ``default_rng(config.seed)``

        Raises:
            EmptyPopulationError: population_size or generations <= 0
        """
        self.config = config.check()
        self.settings = (settings or SequenceConfig()).check()
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)

    @property
    def initial_channels(self) -> tuple[str, ...]:
        return self.config.constraints.allowed_channels or self.settings.channel_catalog

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def initialize(self) -> list[Genome]:
        return [
            random_genes(self.rng, self.initial_channels, self.settings)
            for _ in range(self.config.population_size)
        ]

    def evaluate_population(
        self,
        genomes: list[Genome],
        avg_score: float,
        pool: Executor | None = None,
    ) -> list[SequenceChromosome]:
        def score(genes: Genome) -> SequenceChromosome:
            return evaluate(genes, self.config.constraints, avg_score, self.settings)

        if pool is not None:
            return list(pool.map(score, genomes))
        return [score(g) for g in genomes]

    def select(self, population: list[SequenceChromosome], n: int) -> list[SequenceChromosome]:
        """Tournament selection with replacement."""
        parents = []
        for _ in range(n):
            draws = self.rng.integers(0, len(population), size=self.config.tournament_size)
            best = population[int(draws[0])]
            for idx in draws[1:]:
                if population[int(idx)].fitness > best.fitness:
                    best = population[int(idx)]
            parents.append(best)
        return parents

    def crossover(self, parents: list[Genome]) -> list[Genome]:
        """
        Two-point crossover over consecutive parent pairs.

        Each parent gets its own cut point, so children can differ in
        length from both parents.  Pairs that are not crossed (and an odd
        trailing parent) pass through unchanged.
        """
        offspring: list[Genome] = []
        for i in range(0, len(parents) - 1, 2):
            p1, p2 = parents[i], parents[i + 1]
            if (
                self.rng.random() < self.config.crossover_rate
                and len(p1) >= 2 and len(p2) >= 2
            ):
                cut1 = int(self.rng.integers(1, len(p1)))
                cut2 = int(self.rng.integers(1, len(p2)))
                offspring.append(p1[:cut1] + p2[cut2:])
                offspring.append(p2[:cut2] + p1[cut1:])
            else:
                offspring.extend([p1, p2])
        if len(parents) % 2:
            offspring.append(parents[-1])
        return offspring

    def mutate(self, genes: Genome) -> Genome:
        """Alter one gene's channel, content or timing."""
        if not genes or self.rng.random() >= self.config.mutation_rate:
            return genes

        idx = int(self.rng.integers(len(genes)))
        gene = genes[idx]
        op = int(self.rng.integers(3))
        if op == 0:
            catalog = self.settings.channel_catalog
            gene = replace(gene, channel=catalog[int(self.rng.integers(len(catalog)))])
        elif op == 1:
            catalog = self.settings.content_catalog
            gene = replace(gene, content=catalog[int(self.rng.integers(len(catalog)))])
        else:
            lo, hi = self.settings.timing_offset_range
            gene = replace(gene, timing=max(1, gene.timing + int(self.rng.integers(lo, hi + 1))))

        return genes[:idx] + (gene,) + genes[idx + 1:]

    def next_generation(
        self,
        population: list[SequenceChromosome],
        avg_score: float,
        pool: Executor | None = None,
    ) -> list[SequenceChromosome]:
        size = self.config.population_size
        ranked = sorted(population, key=lambda c: c.fitness, reverse=True)
        elites = ranked[:min(self.config.elite_count, size)]

        slots = size - len(elites)
        if slots <= 0:
            return elites

        # Parents are drawn in batches of half the population
        n_parents = slots + slots % 2
        batch = max(2, size // 2)
        parents: list[SequenceChromosome] = []
        while len(parents) < n_parents:
            parents.extend(self.select(population, batch))
        parents = parents[:n_parents]

        offspring = self.crossover([p.genes for p in parents])[:slots]
        offspring = [self.mutate(g) for g in offspring]
        return elites + self.evaluate_population(offspring, avg_score, pool)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def optimize(
        self,
        opportunity_signals: list[OpportunitySignal],
        *,
        cancel_event: threading.Event | None = None,
        on_generation: Callable[[GenerationStats], None] | None = None,
        strict: bool = False,
    ) -> SequenceOptimizationResult:
        """
        Run the GA for ``config.generations`` generations.

        Args:
            opportunity_signals: Opportunity scores of the target population
            cancel_event: Checked once per generation boundary; an
                in-flight generation always completes
            on_generation: Called with the stats of every generation
            strict: Raise DegenerateOpportunityError on an empty signal set
                instead of falling back to the neutral score

        Returns:
            SequenceOptimizationResult
        """
        s = self.settings
        avg_score = average_opportunity_score(
            opportunity_signals, neutral=s.neutral_opportunity_score, strict=strict,
        )

        logger.info(
            f"Optimizing sequences: population={self.config.population_size}, "
            f"generations={self.config.generations}, avg opportunity={avg_score:.1f}"
        )

        pool = ThreadPoolExecutor(max_workers=s.max_workers) if s.max_workers > 1 else None
        try:
            population = self.evaluate_population(self.initialize(), avg_score, pool)
            baseline = float(np.mean([c.fitness for c in population]))

            history = [self._stats(0, population)]
            if on_generation:
                on_generation(history[0])

            best_so_far = history[0].best_fitness
            last_improvement = 0
            cancelled = False

            for generation in range(1, self.config.generations + 1):
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning(f"Sequence optimization cancelled before generation {generation}")
                    cancelled = True
                    break

                population = self.next_generation(population, avg_score, pool)
                stats = self._stats(generation, population)
                history.append(stats)

                if stats.feasible_fraction == 0:
                    logger.warning(f"Generation {generation}: no feasible sequences")
                logger.debug(
                    f"Generation {generation}: best={stats.best_fitness:.4f} "
                    f"mean={stats.mean_fitness:.4f} feasible={stats.feasible_fraction:.0%}"
                )

                if stats.best_fitness > best_so_far + s.convergence_tolerance:
                    best_so_far = stats.best_fitness
                    last_improvement = generation

                if on_generation:
                    on_generation(stats)
        finally:
            if pool is not None:
                pool.shutdown()

        generations_run = history[-1].generation
        best = max(c.fitness for c in population)
        feasible_fraction = sum(c.feasible for c in population) / len(population)

        result = SequenceOptimizationResult(
            top_sequences=self._top_unique(population, s.top_k),
            best_fitness=best,
            convergence_generation=last_improvement,
            converged=generations_run - last_improvement >= s.convergence_patience,
            improvement_over_baseline=(best - baseline) / baseline * 100 if baseline > 0 else 0.0,
            baseline_fitness=baseline,
            generations_run=generations_run,
            feasible_fraction=feasible_fraction,
            any_feasible=feasible_fraction > 0,
            cancelled=cancelled,
            population_diversity=population_diversity(population),
            history=pd.DataFrame([h.to_dict() for h in history]),
        )

        logger.info(
            f"Sequence optimization complete. Best fitness {best:.4f} "
            f"(+{result.improvement_over_baseline:.1f}% vs baseline), "
            f"last improvement at generation {last_improvement}"
        )
        return result

    @staticmethod
    def _stats(generation: int, population: list[SequenceChromosome]) -> GenerationStats:
        fitness = np.array([c.fitness for c in population])
        return GenerationStats(
            generation=generation,
            best_fitness=float(fitness.max()),
            mean_fitness=float(fitness.mean()),
            feasible_fraction=sum(c.feasible for c in population) / len(population),
        )

    @staticmethod
    def _top_unique(population: list[SequenceChromosome], k: int) -> list[SequenceChromosome]:
        top: list[SequenceChromosome] = []
        seen: set[Genome] = set()
        for chrom in sorted(population, key=lambda c: c.fitness, reverse=True):
            if chrom.genes in seen:
                continue
            seen.add(chrom.genes)
            top.append(chrom)
            if len(top) == k:
                break
        return top


def optimize_sequence(
    config: GAConfig,
    opportunity_signals: list[OpportunitySignal],
    *,
    rng: np.random.Generator | None = None,
    settings: SequenceConfig | None = None,
    cancel_event: threading.Event | None = None,
    on_generation: Callable[[GenerationStats], None] | None = None,
    strict: bool = False,
) -> SequenceOptimizationResult:
    """
    Convenience function for a single GA run.

    Args:
        config: GA parameters and constraints
        opportunity_signals: Opportunity scores of the target population
        rng: Optional random source (overrides config.seed)

    Returns:
        SequenceOptimizationResult
    """
    optimizer = GeneticSequenceOptimizer(config, settings=settings, rng=rng)
    return optimizer.optimize(
        opportunity_signals,
        cancel_event=cancel_event,
        on_generation=on_generation,
        strict=strict,
    )
