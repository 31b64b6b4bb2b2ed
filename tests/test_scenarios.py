"""Tests for scenario planning."""

import pytest

from config import ScenarioConfig
from core.contracts import ChannelCategory, ChannelConstraint
from optimization import (
    BudgetAllocator,
    ScenarioEngine,
    ScenarioObjective,
    compare_scenarios,
    derive_constraints,
    recommend_scenarios,
    run_scenarios,
)
from optimization.scenarios import PROFILES


class ConstantResponse:
    def __init__(self, rates):
        self.rates = rates

    def roi(self, channel, budget):
        return self.rates[channel.id]

    def marginal_roi(self, channel, budget):
        return self.rates[channel.id]


@pytest.fixture
def mixed(channel_factory):
    return [
        channel_factory("field", ChannelCategory.PERSONAL),
        channel_factory("web", ChannelCategory.DIGITAL),
        channel_factory("events", ChannelCategory.EVENT),
        channel_factory("print", ChannelCategory.NON_PERSONAL),
    ]


class TestDeriveConstraints:
    """Test per-profile constraint derivation."""

    def test_max_roi_caps_below_saturation(self, mixed):
        """Every channel is capped at 85% of saturation."""
        c = derive_constraints(ScenarioObjective.MAX_ROI, mixed)
        assert c["web"].max_budget == pytest.approx(1_700_000)
        assert c["web"].min_budget == 0

    def test_max_reach_caps_expensive_reach(self, mixed):
        """Personal and event growth limited to 10%, others untouched."""
        c = derive_constraints(ScenarioObjective.MAX_REACH, mixed)
        assert c["field"].max_budget == pytest.approx(1_100_000)
        assert c["events"].max_budget == pytest.approx(1_100_000)
        assert c["web"] == mixed[1].constraint

    def test_balanced_band(self, mixed):
        """Balanced keeps every channel within +/-20%."""
        c = derive_constraints(ScenarioObjective.BALANCED, mixed)
        for ch in mixed:
            assert c[ch.id].min_budget == pytest.approx(800_000)
            assert c[ch.id].max_budget == pytest.approx(1_200_000)

    def test_digital_first(self, mixed):
        """Digital minimum raised, non-digital growth capped at 5%."""
        c = derive_constraints(ScenarioObjective.DIGITAL_FIRST, mixed)
        assert c["web"].min_budget == pytest.approx(1_200_000)
        assert c["web"].max_budget == pytest.approx(5_000_000)
        assert c["field"].max_budget == pytest.approx(1_050_000)

    def test_field_focused(self, mixed):
        """Personal minimum raised, digital and non-personal capped at 10%."""
        c = derive_constraints(ScenarioObjective.FIELD_FOCUSED, mixed)
        assert c["field"].min_budget == pytest.approx(1_150_000)
        assert c["web"].max_budget == pytest.approx(1_100_000)
        assert c["print"].max_budget == pytest.approx(1_100_000)
        assert c["events"] == mixed[2].constraint

    def test_derived_range_stays_inside_base(self, channel_factory):
        """Derived bounds never leave the channel's own constraint."""
        ch = channel_factory("web", max_budget=1_100_000)
        c = derive_constraints(ScenarioObjective.BALANCED, [ch])["web"]
        assert c.min_budget == pytest.approx(800_000)
        assert c.max_budget == pytest.approx(1_100_000)


class TestScoring:
    """Test risk, feasibility and balance scores."""

    def test_risk_score(self, channel_factory):
        """Concentration, saturation and large changes add risk."""
        channels = [
            channel_factory("a", current_budget=500_000, saturation_point=1_000_000,
                            min_budget=100_000, max_budget=1_000_000),
            channel_factory("b", current_budget=480_000, saturation_point=1_000_000,
                            min_budget=100_000, max_budget=1_000_000),
        ]
        allocator = BudgetAllocator(response_model=ConstantResponse({"a": 5.0, "b": 2.0}))
        allocation = allocator.allocate(channels, 1_500_000)

        # +3 concentration, +2 saturation and +1 change, all from channel a
        assert ScenarioEngine().risk_score(allocation, 1_500_000) == 6

    def test_feasibility_score(self, channel_factory):
        """Tight growth limits, fixed constraints and risk-minimizing profiles cost points."""
        channels = [channel_factory("a"), channel_factory("b")]
        constraints = {
            "a": ChannelConstraint(min_budget=0, max_budget=1_100_000),
            "b": ChannelConstraint(min_budget=2_000_000, max_budget=2_000_000),
        }
        engine = ScenarioEngine()

        assert engine.feasibility_score(
            PROFILES[ScenarioObjective.MAX_ROI], channels, constraints,
        ) == 7
        assert engine.feasibility_score(
            PROFILES[ScenarioObjective.BALANCED], channels, constraints,
        ) == 6

    def test_balance_score_weights(self, portfolio):
        """0.4 x ROI + 0.3 x (10 - risk) + 0.3 x feasibility."""
        engine = ScenarioEngine()
        scenario = engine.run_one(ScenarioObjective.MAX_ROI, portfolio, 45_000_000)
        expected = (
            0.4 * scenario.expected_roi
            + 0.3 * (10 - scenario.risk_score)
            + 0.3 * scenario.feasibility_score
        )
        assert engine.balance_score(scenario) == pytest.approx(expected)


class TestScenarioEngine:
    """Test running and comparing all profiles."""

    def test_runs_every_profile(self, portfolio):
        """One scored scenario per objective, in objective order."""
        scenarios = run_scenarios(portfolio, 45_000_000)

        assert [s.objective for s in scenarios] == list(ScenarioObjective)
        for s in scenarios:
            assert s.feasible
            assert 0 <= s.risk_score <= 10
            assert 0 <= s.feasibility_score <= 10
            assert s.results.total_allocated <= 45_000_000 + 1e-6

    def test_infeasible_scenario_does_not_abort(self, portfolio):
        """Profiles whose minimums exceed the budget are flagged, not raised."""
        scenarios = {s.objective: s for s in ScenarioEngine().run(portfolio, 25_000_000)}

        assert scenarios[ScenarioObjective.MAX_ROI].feasible
        balanced = scenarios[ScenarioObjective.BALANCED]
        assert not balanced.feasible
        assert balanced.results is None
        assert balanced.risk_score == 10
        assert balanced.feasibility_score == 0
        assert "exceed" in balanced.message

    def test_recommendation_among_feasible(self, portfolio):
        """Recommendations only consider feasible scenarios."""
        scenarios = ScenarioEngine().run(portfolio, 25_000_000)
        rec = recommend_scenarios(scenarios)

        assert rec.best_roi.feasible
        assert rec.most_balanced.feasible
        assert rec.best_roi.expected_roi == max(s.expected_roi for s in scenarios if s.feasible)

    def test_no_feasible_scenario(self, portfolio):
        """Nothing to recommend when every profile is infeasible."""
        scenarios = ScenarioEngine().run(portfolio, 10_000_000)
        rec = recommend_scenarios(scenarios)

        assert not any(s.feasible for s in scenarios)
        assert rec.best_roi is None
        assert rec.most_balanced is None

    def test_parallel_matches_sequential(self, portfolio):
        """Thread-pool execution gives the same results in the same order."""
        sequential = ScenarioEngine().run(portfolio, 45_000_000)
        parallel = ScenarioEngine(ScenarioConfig(max_workers=4)).run(portfolio, 45_000_000)

        assert [s.name for s in parallel] == [s.name for s in sequential]
        assert [s.expected_roi for s in parallel] == pytest.approx(
            [s.expected_roi for s in sequential]
        )

    def test_comparison_table(self, portfolio):
        """One row per scenario with a spend column per channel."""
        engine = ScenarioEngine()
        table = compare_scenarios(engine.run(portfolio, 45_000_000), engine)

        assert len(table) == 5
        assert "field_force_spend" in table.columns
        assert set(table["scenario"]) == {p.name for p in PROFILES.values()}
