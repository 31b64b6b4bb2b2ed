"""Tests for input contracts."""

import pytest
from pydantic import ValidationError

from core.contracts import (
    ChannelConstraint,
    CurvePoint,
    GAConfig,
    OpportunitySignal,
    OptimizationConstraints,
    ResponseCurve,
    check_channels,
)
from core.exceptions import InvalidChannelError, InvalidConfigurationError, PromoOptError


class TestResponseCurve:
    """Test response curve construction."""

    def test_points_sorted(self):
        """Points are ordered by spend."""
        curve = ResponseCurve(
            points=(CurvePoint(spend=20, response=5), CurvePoint(spend=10, response=3)),
            saturation_point=15,
        )
        assert [p.spend for p in curve.points] == [10, 20]

    def test_from_empty_points(self):
        """A saturation point cannot be derived from nothing."""
        with pytest.raises(InvalidChannelError):
            ResponseCurve.from_points([])

    def test_negative_spend_rejected(self):
        """Spend samples are non-negative."""
        with pytest.raises(ValidationError):
            CurvePoint(spend=-1, response=0)


class TestChannelConstraint:
    """Test spend constraint helpers."""

    def test_growth_limit(self):
        """Growth headroom relative to current budget."""
        c = ChannelConstraint(min_budget=0, max_budget=150)
        assert c.growth_limit(100) == pytest.approx(0.5)
        assert c.growth_limit(0) is None

    def test_fixed(self):
        """Equal bounds make a fixed constraint."""
        assert ChannelConstraint(min_budget=5, max_budget=5).is_fixed
        assert not ChannelConstraint(min_budget=0, max_budget=5).is_fixed


class TestChannels:
    """Test channel validation."""

    def test_valid_portfolio(self, portfolio):
        """A well-formed portfolio passes."""
        assert check_channels(portfolio) == portfolio

    def test_channels_are_frozen(self, portfolio):
        """Channels are read-only values."""
        with pytest.raises(ValidationError):
            portfolio[0].base_roi = 9.0

    def test_display_name_falls_back_to_id(self, channel_factory):
        """Unnamed channels display their id."""
        assert channel_factory("email").display_name == "email"

    def test_errors_share_base(self, channel_factory):
        """Domain errors derive from PromoOptError."""
        with pytest.raises(PromoOptError):
            check_channels([channel_factory("a", saturation_point=-5)])


class TestSequenceContracts:
    """Test GA inputs."""

    def test_score_bounds(self):
        """Opportunity scores lie in [0, 100]."""
        with pytest.raises(ValidationError):
            OpportunitySignal(entity_id="x", score=120)

    def test_rates_bounded(self):
        """Rates lie in [0, 1]."""
        with pytest.raises(ValidationError):
            GAConfig(mutation_rate=1.5)

    @pytest.mark.parametrize("size, rate, expected", [(100, 0.1, 10), (5, 0.1, 1), (10, 0.0, 1)])
    def test_elite_count(self, size, rate, expected):
        """At least one elite survives."""
        assert GAConfig(population_size=size, elitism_rate=rate).elite_count == expected

    def test_defaults(self):
        """Default GA parameters."""
        cfg = GAConfig()
        assert (cfg.population_size, cfg.generations) == (100, 50)
        assert (cfg.mutation_rate, cfg.crossover_rate, cfg.elitism_rate) == (0.1, 0.7, 0.1)
        assert cfg.tournament_size == 5

    def test_timing_window_order(self):
        """A timing window that opens after it closes is rejected."""
        cfg = GAConfig(constraints=OptimizationConstraints(min_timing=30, max_timing=10))
        with pytest.raises(InvalidConfigurationError) as exc:
            cfg.check()
        assert exc.value.setting == "min_timing"

    def test_single_day_window(self):
        """Equal timing bounds are allowed."""
        cfg = GAConfig(constraints=OptimizationConstraints(min_timing=7, max_timing=7))
        assert cfg.check() is cfg
