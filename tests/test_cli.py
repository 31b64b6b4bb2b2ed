"""Tests for the promo-opt command line."""

import json
import sys

import pytest
import yaml
from loguru import logger
from typer.testing import CliRunner

from cli import app, load_channels


runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def channels_file(tmp_path):
    data = {
        "total_budget": 12_000_000,
        "channels": [
            {
                "id": "field_force",
                "name": "Field Force",
                "category": "personal",
                "medium": "field",
                "current_budget": 6_000_000,
                "base_roi": 3.0,
                "response_curve": {"saturation_point": 9_000_000},
                "constraint": {"min_budget": 4_000_000, "max_budget": 9_000_000},
            },
            {
                "id": "email",
                "category": "digital",
                "medium": "email",
                "current_budget": 2_000_000,
                "base_roi": 4.0,
                "response_curve": {
                    "points": [
                        {"spend": 0, "response": 0},
                        {"spend": 2_000_000, "response": 9_000_000},
                        {"spend": 4_000_000, "response": 12_000_000},
                        {"spend": 6_000_000, "response": 13_000_000},
                    ],
                },
                "constraint": {"min_budget": 1_000_000, "max_budget": 5_000_000},
            },
        ],
    }
    path = tmp_path / "channels.yaml"
    path.write_text(yaml.dump(data))
    return path


class TestLoadChannels:
    """Test the channel file format."""

    def test_saturation_from_points(self, channels_file):
        """Curves given only as points get a derived saturation point."""
        channels, budget = load_channels(channels_file)

        assert budget == 12_000_000
        assert [c.id for c in channels] == ["field_force", "email"]
        # marginal response 0.5 between 4M and 6M
        assert channels[1].saturation_point == 6_000_000


class TestCommands:
    """Test each command end to end."""

    def test_allocate_json(self, channels_file, tmp_path):
        """Allocation written as JSON stays within the budget."""
        out = tmp_path / "allocation.json"
        result = runner.invoke(app, ["allocate", str(channels_file), "--plan", "-o", str(out)])

        assert result.exit_code == 0, result.output
        payload = json.loads(out.read_text())
        assert payload["total_allocated"] <= 12_000_000
        assert {a["channel_id"] for a in payload["allocations"]} == {"field_force", "email"}
        assert payload["implementation_plan"][-1]["phase"] == 3

    def test_allocate_table(self, channels_file):
        """Table output lists every channel."""
        result = runner.invoke(app, ["allocate", str(channels_file), "--budget", "10000000"])

        assert result.exit_code == 0, result.output
        assert "field_force" in result.output
        assert "Allocated" in result.output

    def test_allocate_infeasible(self, channels_file):
        """Minimums above the budget exit with an error code."""
        result = runner.invoke(app, ["allocate", str(channels_file), "--budget", "1000"])
        assert result.exit_code == 1

    def test_scenarios(self, channels_file):
        """Scenario comparison prints the recommendations."""
        result = runner.invoke(app, ["scenarios", str(channels_file)])

        assert result.exit_code == 0, result.output
        assert "Best ROI" in result.output
        assert "Balanced Growth" in result.output

    def test_sequence(self, tmp_path):
        """GA run written as JSON."""
        signals = tmp_path / "signals.yaml"
        signals.write_text(yaml.dump([{"entity_id": "hcp-1", "score": 75}]))
        out = tmp_path / "sequence.json"

        result = runner.invoke(app, [
            "sequence", "--population", "10", "--generations", "5", "--seed", "7",
            "--signals", str(signals), "--channel", "Email", "--channel", "Web",
            "-o", str(out),
        ])

        assert result.exit_code == 0, result.output
        payload = json.loads(out.read_text())
        assert payload["generations_run"] == 5
        assert len(payload["history"]) == 6
        assert payload["top_sequences"]

    def test_sequence_table(self):
        """Table output ranks the top sequences."""
        result = runner.invoke(app, ["sequence", "-p", "10", "-g", "3", "--seed", "1"])

        assert result.exit_code == 0, result.output
        assert "Best fitness" in result.output
        assert "1. fitness=" in result.output

    def test_curve(self, channels_file):
        """Curve sampling reports saturation and optimal spend."""
        result = runner.invoke(app, ["curve", str(channels_file), "--channel", "field_force"])

        assert result.exit_code == 0, result.output
        assert "Saturation" in result.output

    def test_curve_unknown_channel(self, channels_file):
        """Unknown channel ids exit with an error code."""
        result = runner.invoke(app, ["curve", str(channels_file), "--channel", "nope"])
        assert result.exit_code == 1

    def test_simulate(self, channels_file, tmp_path):
        """What-if budgets report projected ROI against current spend."""
        out = tmp_path / "simulation.json"
        result = runner.invoke(app, [
            "simulate", str(channels_file), "--set", "email=3000000", "-o", str(out),
        ])

        assert result.exit_code == 0, result.output
        payload = json.loads(out.read_text())
        assert payload["budgets"] == {"field_force": 6_000_000, "email": 3_000_000}
        assert payload["reach_impact"] > 0

    def test_simulate_bad_change(self, channels_file):
        """Budget changes must be channel_id=amount."""
        result = runner.invoke(app, ["simulate", str(channels_file), "--set", "email"])
        assert result.exit_code == 1

    def test_simulate_unknown_channel(self, channels_file):
        """Unknown channel ids exit with an error code."""
        result = runner.invoke(app, ["simulate", str(channels_file), "--set", "nope=5"])
        assert result.exit_code == 1


class TestBadChannelFiles:
    """Unreadable channel files exit with an error code instead of a traceback."""

    @pytest.mark.parametrize("text", [
        "channels: [\n  - id: email\n",
        "channels:\n  - id: email\n    base_roi: 2.0\n",
        "channels:\n  - id: email\n    category: digital\n    base_roi: 2.0\n"
        "    constraint: {max_budget: 10}\n    response_curve:\n"
        "      points: [{spend: 1}]\n",
        "- just\n- a\n- list\n",
    ])
    @pytest.mark.parametrize("command", ["allocate", "scenarios"])
    def test_malformed_file(self, tmp_path, text, command):
        """Broken YAML, schema errors and bad curve samples are reported cleanly."""
        path = tmp_path / "channels.yaml"
        path.write_text(text)

        result = runner.invoke(app, [command, str(path), "--budget", "1000"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)

    def test_missing_file(self, tmp_path):
        """A missing file is reported cleanly."""
        result = runner.invoke(app, ["curve", str(tmp_path / "absent.yaml"), "--channel", "x"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
