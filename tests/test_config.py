"""Tests for configuration loading and validation."""

import pytest
import yaml
from pydantic import ValidationError

from config import (
    AllocationConfig,
    PromoOptConfig,
    ResponseConfig,
    SequenceConfig,
    get_config,
    load_config,
    set_config,
)
from core.exceptions import InvalidConfigurationError


class TestDefaults:
    """Test default settings."""

    def test_allocation_defaults(self):
        """Greedy allocator defaults."""
        cfg = AllocationConfig()
        assert cfg.increment == 100_000
        assert cfg.min_remaining == 10_000
        assert cfg.min_marginal_roi == 1.5
        assert cfg.baseline_roi == 2.5
        assert sum(cfg.quarterly_weights) == pytest.approx(1.0)

    def test_sections_are_frozen(self):
        """Settings cannot be mutated in place."""
        cfg = ResponseConfig()
        with pytest.raises(ValidationError):
            cfg.marginal_delta = 5


class TestChecks:
    """Test domain checks on settings."""

    def test_non_positive_increment(self):
        """The greedy increment must be positive."""
        with pytest.raises(InvalidConfigurationError) as exc:
            AllocationConfig(increment=0).check()
        assert exc.value.setting == "increment"
        assert exc.value.code == "INVALID_CONFIGURATION"

    def test_quarterly_weights_must_sum_to_one(self):
        """Seasonality weights form a distribution."""
        with pytest.raises(InvalidConfigurationError):
            AllocationConfig(quarterly_weights=(0.5, 0.5, 0.5, 0.5)).check()

    def test_gene_bounds(self):
        """Minimum gene count cannot exceed the maximum."""
        with pytest.raises(InvalidConfigurationError):
            SequenceConfig(min_genes=8, max_genes=5).check()

    def test_empty_catalog(self):
        """Catalogs cannot be empty."""
        with pytest.raises(InvalidConfigurationError):
            SequenceConfig(content_catalog=()).check()


class TestYaml:
    """Test YAML round trip and loading."""

    def test_round_trip(self, tmp_path):
        """Written config reads back unchanged."""
        cfg = PromoOptConfig(allocation=AllocationConfig(increment=50_000))
        path = tmp_path / "config.yaml"
        cfg.to_yaml(path)

        loaded = PromoOptConfig.from_yaml(path)
        assert loaded.model_dump() == cfg.model_dump()
        assert loaded.allocation.increment == 50_000

    def test_partial_file(self, tmp_path):
        """Missing sections take their defaults."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"sequence": {"top_k": 3}}))

        cfg = load_config(path)
        assert cfg.sequence.top_k == 3
        assert cfg.allocation.increment == 100_000

    def test_invalid_file_rejected(self, tmp_path):
        """load_config runs the domain checks."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"response": {"marginal_delta": 0}}))

        with pytest.raises(InvalidConfigurationError):
            load_config(path)

    def test_global_config(self):
        """set_config replaces the process-wide default."""
        custom = PromoOptConfig(project_name="custom")
        set_config(custom)
        try:
            assert get_config() is custom
        finally:
            set_config(PromoOptConfig())
