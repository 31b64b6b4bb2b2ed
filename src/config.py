"""
Configuration management for Promo-Opt.

Centralised configuration with YAML loading and sensible defaults.
Each optimizer receives its own section at construction, so a run
carries an immutable settings object rather than reading shared
mutable state.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from core.exceptions import InvalidConfigurationError


# ---------------------------------------------------------------------------
# Section configs
# ---------------------------------------------------------------------------

class ResponseConfig(BaseModel):
    """Response-curve model settings."""

    marginal_delta: float = Field(
        default=100_000.0, description="Spend increment for finite-difference marginal ROI",
    )
    curve_steps: int = Field(default=50, ge=1)
    curve_span: float = Field(default=1.5, gt=0, description="Sampled spend range as multiple of saturation")

    class Config:
        frozen = True

    def check(self) -> "ResponseConfig":
        if self.marginal_delta <= 0:
            raise InvalidConfigurationError(
                f"marginal_delta must be positive, got {self.marginal_delta}",
                setting="marginal_delta",
            )
        return self


class AllocationConfig(BaseModel):
    """Greedy marginal-ROI allocator settings."""

    increment: float = Field(default=100_000.0)
    min_remaining: float = Field(default=10_000.0, ge=0)
    min_marginal_roi: float = Field(default=1.5)
    baseline_roi: float = Field(default=2.5)
    max_iterations: int = Field(default=100_000, ge=1)
    quarterly_weights: tuple[float, float, float, float] = (0.30, 0.25, 0.20, 0.25)
    reach_dampening_ratio: float = Field(default=0.7, gt=0)
    cost_per_reach: dict[str, float] = Field(
        default_factory=lambda: {
            "personal": 12_500.0,
            "digital": 4_000.0,
            "event": 15_000.0,
            "non_personal": 3_000.0,
        }
    )
    touchpoints_per_reach: dict[str, float] = Field(
        default_factory=lambda: {
            "personal": 4.0,
            "digital": 6.0,
            "event": 1.0,
            "non_personal": 8.0,
        }
    )

    class Config:
        frozen = True

    def check(self) -> "AllocationConfig":
        if self.increment <= 0:
            raise InvalidConfigurationError(
                f"increment must be positive, got {self.increment}", setting="increment",
            )
        if abs(sum(self.quarterly_weights) - 1.0) > 1e-6:
            raise InvalidConfigurationError(
                f"quarterly_weights must sum to 1, got {sum(self.quarterly_weights):.4f}",
                setting="quarterly_weights",
            )
        return self


class ScenarioConfig(BaseModel):
    """Scenario comparison and scoring settings."""

    max_workers: int = Field(default=1, ge=1)
    concentration_threshold: float = Field(default=0.40)
    saturation_threshold: float = Field(default=0.90)
    change_threshold: float = Field(default=0.30)
    growth_limit_threshold: float = Field(default=0.20)
    roi_weight: float = Field(default=0.4)
    risk_weight: float = Field(default=0.3)
    feasibility_weight: float = Field(default=0.3)

    class Config:
        frozen = True


class SequenceConfig(BaseModel):
    """Catalogs and fixed ranges for the genetic sequence optimizer."""

    channel_catalog: tuple[str, ...] = (
        "Email", "Field", "Web", "Speaker Program", "Conference", "Webinar", "Digital Ad",
    )
    content_catalog: tuple[str, ...] = (
        "Efficacy Data", "Safety Profile", "Patient Support",
        "Access Programs", "Clinical Guidelines",
    )
    min_genes: int = Field(default=5, ge=1)
    max_genes: int = Field(default=10, ge=1)
    step_days: tuple[int, int] = (7, 14)
    cost_range: tuple[float, float] = (100.0, 1000.0)
    impact_range: tuple[float, float] = (10.0, 100.0)
    timing_offset_range: tuple[int, int] = (-7, 14)
    engagement_scale: float = Field(default=500.0, gt=0)
    neutral_opportunity_score: float = Field(default=50.0, ge=0, le=100)
    infeasible_penalty: float = Field(default=0.1, ge=0, le=1)
    max_workers: int = Field(default=1, ge=1)
    convergence_tolerance: float = Field(default=1e-6, ge=0)
    convergence_patience: int = Field(default=10, ge=1)
    top_k: int = Field(default=5, ge=1)

    class Config:
        frozen = True

    def check(self) -> "SequenceConfig":
        if self.min_genes > self.max_genes:
            raise InvalidConfigurationError(
                f"min_genes {self.min_genes} exceeds max_genes {self.max_genes}",
                setting="min_genes",
            )
        if not self.channel_catalog or not self.content_catalog:
            raise InvalidConfigurationError(
                "channel and content catalogs must be non-empty", setting="catalog",
            )
        return self


class LoggingConfig(BaseModel):
    """Log sink settings (applied by the CLI)."""

    level: str = Field(default="INFO")

    class Config:
        frozen = True


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

class PromoOptConfig(BaseModel):
    """Root configuration for Promo-Opt."""

    project_name: str = Field(default="Promo-Opt")
    environment: str = Field(default="development")

    response: ResponseConfig = Field(default_factory=ResponseConfig)
    allocation: AllocationConfig = Field(default_factory=AllocationConfig)
    scenarios: ScenarioConfig = Field(default_factory=ScenarioConfig)
    sequence: SequenceConfig = Field(default_factory=SequenceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "PromoOptConfig":
        """Load config from a YAML file."""
        with open(Path(path)) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """Write config to a YAML file."""
        with open(Path(path), "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)

    def to_flat_dict(self) -> dict[str, Any]:
        """Return a plain dict snapshot of the config."""
        return self.model_dump()

    def check(self) -> "PromoOptConfig":
        """Run the domain checks of every section."""
        self.response.check()
        self.allocation.check()
        self.sequence.check()
        return self


# ---------------------------------------------------------------------------
# Global default
# ---------------------------------------------------------------------------

_config: PromoOptConfig | None = None


def get_config() -> PromoOptConfig:
    """Return the global config instance (creates default if needed)."""
    global _config
    if _config is None:
        _config = PromoOptConfig()
    return _config


def set_config(config: PromoOptConfig) -> None:
    """Override the global config instance."""
    global _config
    _config = config


def load_config(path: Path | str | None = None) -> PromoOptConfig:
    """
    Load config from file, falling back to standard locations, then defaults.
    """
    global _config

    if path is not None:
        _config = PromoOptConfig.from_yaml(path)
    else:
        for candidate in [Path("config.yaml"), Path("config/config.yaml")]:
            if candidate.exists():
                _config = PromoOptConfig.from_yaml(candidate)
                break
        else:
            _config = PromoOptConfig()

    return _config.check()
