"""
Viewer metrics over a session's viewer history.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

from streamwatch.schemas.stream import ViewerDataPoint

# Relative change between history halves that counts as movement
TREND_THRESHOLD = 0.07
MIN_TREND_POINTS = 4


class ViewerTrend(str, Enum):
    GROWING = "growing"
    STEADY = "steady"
    DROPPING = "dropping"


def average_viewers(history: Sequence[ViewerDataPoint]) -> int:
    """Integer mean of all samples (truncated); 0 for an empty history."""
    if not history:
        return 0
    return int(sum(p.count for p in history) / len(history))


def peak_viewers(history: Sequence[ViewerDataPoint]) -> int:
    """Highest sample; 0 for an empty history."""
    return max((p.count for p in history), default=0)


def viewer_trend(history: Sequence[ViewerDataPoint]) -> Optional[ViewerTrend]:
    """
    Classify momentum by comparing the mean of the early half of the history with
    the mean of the late half. The early half gets the floor of len/2 samples.

    Returns:
        None when fewer than 4 samples exist, otherwise a ViewerTrend
    """
    if len(history) < MIN_TREND_POINTS:
        return None

    mid = len(history) // 2
    early = sum(p.count for p in history[:mid]) / mid
    late = sum(p.count for p in history[mid:]) / (len(history) - mid)

    if early == 0:
        # Any audience after an empty start is growth; zero throughout is flat
        return ViewerTrend.GROWING if late > 0 else ViewerTrend.STEADY

    change = (late - early) / early
    if change > TREND_THRESHOLD:
        return ViewerTrend.GROWING
    if change < -TREND_THRESHOLD:
        return ViewerTrend.DROPPING
    return ViewerTrend.STEADY
