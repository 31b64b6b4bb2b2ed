"""
Incremental impact attribution.

Splits each channel's historical impact into the part attributable to
incremental spend and applies cross-channel synergy bonuses when
complementary channels run in the same portfolio.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from config import ResponseConfig
from core.contracts import Channel, ChannelCategory, ChannelMedium, check_channel
from optimization.response_curves import ResponseCurveModel, ResponseModel


# Multiplicative synergy bonuses
PERSONAL_DIGITAL_SYNERGY = 1.15
EVENT_PERSONAL_SYNERGY = 1.2
EMAIL_WEB_SYNERGY = 1.1


@dataclass(frozen=True)
class ChannelImpact:
    """Attributed impact for a single channel."""

    channel_id: str
    historical_impact: float
    incremental_rate: float
    incremental_impact: float
    synergy_effect: float
    confidence: float | None = None

    @property
    def attributed_impact(self) -> float:
        return self.incremental_impact * self.synergy_effect

    def to_dict(self) -> dict:
        return {
            "channel_id": self.channel_id,
            "historical_impact": self.historical_impact,
            "incremental_rate": self.incremental_rate,
            "incremental_impact": self.incremental_impact,
            "synergy_effect": self.synergy_effect,
            "attributed_impact": self.attributed_impact,
            "confidence": self.confidence,
        }


class ImpactAttributionModel:
    """Convert raw channel ROI into incremental, synergy-adjusted impact."""

    def __init__(
        self,
        response_model: ResponseModel | None = None,
        settings: ResponseConfig | None = None,
    ):
        self.response_model = response_model or ResponseCurveModel(settings)

    def incremental_rate(self, channel: Channel) -> float:
        """Share of current impact attributable to incremental spend."""
        check_channel(channel)
        utilization = channel.actual_spend / channel.saturation_point
        if utilization <= 0.5:
            return 1.2
        if utilization <= 0.85:
            return 1.0
        if utilization <= 1.0:
            return 0.8
        return 0.5

    def synergy(self, channel: Channel, all_channels: list[Channel]) -> float:
        """
        Synergy multiplier for ``channel`` given its peers.

        Bonuses are independent and multiply together.
        """
        peers = [c for c in all_channels if c.id != channel.id]
        peer_categories = {c.category for c in peers}
        peer_media = {c.medium for c in peers}

        effect = 1.0
        if channel.category == ChannelCategory.PERSONAL and ChannelCategory.DIGITAL in peer_categories:
            effect *= PERSONAL_DIGITAL_SYNERGY
        if channel.category == ChannelCategory.EVENT and ChannelCategory.PERSONAL in peer_categories:
            effect *= EVENT_PERSONAL_SYNERGY
        if channel.medium == ChannelMedium.EMAIL and ChannelMedium.WEB in peer_media:
            effect *= EMAIL_WEB_SYNERGY
        return effect

    def confidence(self, channel: Channel) -> float | None:
        """
        Goodness of fit (R^2) of the response model on the channel's samples.

        None when there are fewer than three samples or the observed
        responses have no variance.
        """
        points = channel.response_curve.points
        if len(points) < 3:
            return None

        spends = np.array([p.spend for p in points])
        observed = np.array([p.response for p in points])
        ss_tot = float(np.sum((observed - observed.mean()) ** 2))
        if ss_tot <= 0:
            return None

        predicted = np.array([
            self.response_model.roi(channel, float(s)) * float(s) for s in spends
        ])
        ss_res = float(np.sum((observed - predicted) ** 2))
        return float(np.clip(1 - ss_res / ss_tot, 0.0, 1.0))

    def attribute(self, channel: Channel, all_channels: list[Channel]) -> ChannelImpact:
        historical = channel.base_roi * channel.actual_spend
        rate = self.incremental_rate(channel)
        return ChannelImpact(
            channel_id=channel.id,
            historical_impact=historical,
            incremental_rate=rate,
            incremental_impact=historical * rate,
            synergy_effect=self.synergy(channel, all_channels),
            confidence=self.confidence(channel),
        )

    def attribute_all(self, channels: list[Channel]) -> dict[str, ChannelImpact]:
        return {c.id: self.attribute(c, channels) for c in channels}

    def to_frame(self, channels: list[Channel]) -> pd.DataFrame:
        return pd.DataFrame([i.to_dict() for i in self.attribute_all(channels).values()])


__all__ = [
    "ChannelImpact",
    "ImpactAttributionModel",
]
