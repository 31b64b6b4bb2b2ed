"""
Diminishing-returns response model for promotional channels.

Maps a spend level to an expected ROI with a four-band piecewise
multiplier on the channel's base ROI, keyed on utilization
(spend / saturation point):

    utilization <= 0.5          base * 1.2                 (below optimal)
    0.5  < utilization <= 0.85  base                       (optimal range)
    0.85 < utilization <= 1.0   base * (1 - (u - 0.85) * 2) (approaching saturation)
    utilization > 1.0           base * 0.5 / u             (past saturation)

Marginal ROI is the forward finite difference of total return
(roi * spend) over a fixed spend increment.
"""

from __future__ import annotations

from typing import Protocol

import numpy as np
import pandas as pd

from config import ResponseConfig
from core.contracts import Channel, CurvePoint, check_channel


class ResponseModel(Protocol):
    """Anything the allocator can ask for ROI and marginal ROI."""

    def roi(self, channel: Channel, budget: float) -> float: ...

    def marginal_roi(self, channel: Channel, budget: float) -> float: ...


def utilization_multiplier(
    utilization: float,
    below: float = 1.2,
    optimal: float = 1.0,
) -> float:
    """ROI multiplier for a given utilization level."""
    if utilization <= 0.5:
        return below
    if utilization <= 0.85:
        return optimal
    if utilization <= 1.0:
        return optimal * (1 - (utilization - 0.85) * 2)
    return optimal * 0.5 / utilization


class ResponseCurveModel:
    """
    Piecewise diminishing-returns ROI model.

    Example:
        >>> model = ResponseCurveModel()
        >>> model.roi(channel, budget=50)   # baseROI=2.0, saturation=100
        2.4
    """

    def __init__(self, settings: ResponseConfig | None = None):
        self.settings = (settings or ResponseConfig()).check()

    @property
    def delta(self) -> float:
        return self.settings.marginal_delta

    def utilization(self, channel: Channel, budget: float) -> float:
        check_channel(channel)
        return budget / channel.saturation_point

    def roi(self, channel: Channel, budget: float) -> float:
        """Expected ROI of ``channel`` at spend ``budget``."""
        return channel.base_roi * utilization_multiplier(self.utilization(channel, budget))

    def total_return(self, channel: Channel, budget: float) -> float:
        return self.roi(channel, budget) * budget

    def marginal_roi(self, channel: Channel, budget: float) -> float:
        """Incremental return per unit of spend at ``budget``."""
        delta = self.delta
        return (
            self.total_return(channel, budget + delta) - self.total_return(channel, budget)
        ) / delta

    # ------------------------------------------------------------------
    # Curve sampling
    # ------------------------------------------------------------------

    def sample_curve(self, channel: Channel) -> pd.DataFrame:
        """
        Sample the modelled curve from zero to ``curve_span`` x saturation.

        Returns:
            DataFrame with columns spend, response, roi, marginal_roi
        """
        check_channel(channel)
        max_spend = channel.saturation_point * self.settings.curve_span
        spends = np.linspace(0.0, max_spend, self.settings.curve_steps + 1)

        records = []
        for spend in spends:
            roi = self.roi(channel, float(spend))
            records.append({
                "spend": float(spend),
                "response": roi * float(spend),
                "roi": roi,
                "marginal_roi": self.marginal_roi(channel, float(spend)),
            })
        return pd.DataFrame(records)

    def predicted_response(self, channel: Channel, spends: np.ndarray) -> np.ndarray:
        return np.array([self.total_return(channel, float(s)) for s in spends])


def find_saturation_point(curve: pd.DataFrame, marginal_threshold: float = 1.0) -> float:
    """
    Spend level where the sampled marginal response first drops below threshold.

    Falls back to the largest sampled spend.
    """
    points = [
        CurvePoint(spend=float(row.spend), response=float(row.response))
        for row in curve.itertuples(index=False)
    ]
    for prev, cur in zip(points, points[1:]):
        d_spend = cur.spend - prev.spend
        if d_spend > 0 and (cur.response - prev.response) / d_spend < marginal_threshold:
            return cur.spend
    return points[-1].spend if points else 0.0


def find_optimal_spend(curve: pd.DataFrame) -> float:
    """Spend level with the maximum total response."""
    if curve.empty:
        return 0.0
    return float(curve.loc[curve["response"].idxmax(), "spend"])
