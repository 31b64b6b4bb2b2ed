"""Shared fixtures: a small pharma-style channel portfolio."""

import pytest

from core.contracts import (
    Channel,
    ChannelCategory,
    ChannelConstraint,
    ChannelMedium,
    ResponseCurve,
)


def make_channel(
    channel_id: str,
    category: ChannelCategory = ChannelCategory.DIGITAL,
    *,
    medium: ChannelMedium = ChannelMedium.OTHER,
    current_budget: float = 1_000_000,
    actual_spend: float | None = None,
    base_roi: float = 2.0,
    saturation_point: float = 2_000_000,
    min_budget: float = 0.0,
    max_budget: float = 5_000_000,
    points=(),
) -> Channel:
    return Channel(
        id=channel_id,
        category=category,
        medium=medium,
        current_budget=current_budget,
        actual_spend=current_budget if actual_spend is None else actual_spend,
        base_roi=base_roi,
        response_curve=ResponseCurve(points=points, saturation_point=saturation_point),
        constraint=ChannelConstraint(min_budget=min_budget, max_budget=max_budget),
    )


@pytest.fixture
def portfolio() -> list[Channel]:
    return [
        make_channel(
            "field_force", ChannelCategory.PERSONAL, medium=ChannelMedium.FIELD,
            current_budget=20_000_000, base_roi=3.2, saturation_point=30_000_000,
            min_budget=15_000_000, max_budget=30_000_000,
        ),
        make_channel(
            "email", ChannelCategory.DIGITAL, medium=ChannelMedium.EMAIL,
            current_budget=5_000_000, base_roi=4.5, saturation_point=10_000_000,
            min_budget=2_000_000, max_budget=12_000_000,
        ),
        make_channel(
            "web", ChannelCategory.DIGITAL, medium=ChannelMedium.WEB,
            current_budget=4_000_000, base_roi=3.8, saturation_point=8_000_000,
            min_budget=1_000_000, max_budget=10_000_000,
        ),
        make_channel(
            "speaker_programs", ChannelCategory.EVENT, medium=ChannelMedium.SPEAKER_PROGRAM,
            current_budget=8_000_000, base_roi=2.8, saturation_point=12_000_000,
            min_budget=4_000_000, max_budget=14_000_000,
        ),
        make_channel(
            "journals", ChannelCategory.NON_PERSONAL,
            current_budget=3_000_000, base_roi=1.8, saturation_point=5_000_000,
            min_budget=0, max_budget=6_000_000,
        ),
    ]


@pytest.fixture
def channel_factory():
    return make_channel
