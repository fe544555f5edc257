"""Compares the twins' predicted feeds and suggests a common feeding window."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Optional, Sequence

from twinfeed.core.constants import (
    SYNC_SYNCHRONIZED_MINUTES, SYNC_SLIGHTLY_OFFSET_MINUTES,
    SYNC_PAIR_TOLERANCE_MINUTES, SYNC_RECENT_FEEDS, SYNC_WINDOW_HALF_MINUTES,
)
from twinfeed.core.models import FeedEvent, Prediction
from twinfeed.core.profiles import BEST_SYNC_WINDOWS

logger = logging.getLogger(__name__)

SyncState = Literal["synchronized", "slightly_offset", "desynchronized"]


@dataclass
class SyncStatus:
    state: SyncState
    gap_minutes: float
    sync_rate: float  # 0..1
    common_window_start: Optional[datetime] = None
    common_window_end: Optional[datetime] = None
    suggestion: Optional[str] = None


def classify_gap(gap_minutes: float) -> SyncState:
    if gap_minutes <= SYNC_SYNCHRONIZED_MINUTES:
        return "synchronized"
    if gap_minutes <= SYNC_SLIGHTLY_OFFSET_MINUTES:
        return "slightly_offset"
    return "desynchronized"


# Used by: compute_sync_status
def compute_sync_rate(feeds_a: Sequence[FeedEvent], feeds_b: Sequence[FeedEvent]) -> float:
    """Share of A's recent feeds whose nearest feed of B is close enough to count as together."""
    if not feeds_a or not feeds_b:
        return 0.0

    recent_a = sorted(feeds_a, key=lambda f: f.timestamp)[-SYNC_RECENT_FEEDS:]
    tolerance = SYNC_PAIR_TOLERANCE_MINUTES * 60
    together = 0
    for feed in recent_a:
        nearest = min(abs((feed.timestamp - other.timestamp).total_seconds()) for other in feeds_b)
        if nearest <= tolerance:
            together += 1
    return together / len(recent_a)


def _suggest(midpoint: datetime) -> str:
    hour = midpoint.hour
    for start, end, label in BEST_SYNC_WINDOWS:
        if start <= hour < end:
            return f"Fenêtre idéale : {label} ({start}h-{end}h)"
    return f"Essayez de nourrir les deux vers {midpoint.hour}h{midpoint.minute:02d}"


# Used by: forecast.py
def compute_sync_status(
    prediction_a: Optional[Prediction],
    prediction_b: Optional[Prediction],
    feeds_a: Sequence[FeedEvent],
    feeds_b: Sequence[FeedEvent]
) -> Optional[SyncStatus]:
    if prediction_a is None or prediction_b is None:
        return None

    time_a = prediction_a.timing.predicted_time
    time_b = prediction_b.timing.predicted_time
    gap_minutes = abs((time_a - time_b).total_seconds()) / 60.0
    state = classify_gap(gap_minutes)

    status = SyncStatus(
        state=state,
        gap_minutes=gap_minutes,
        sync_rate=compute_sync_rate(feeds_a, feeds_b),
    )

    if state != "synchronized":
        midpoint = min(time_a, time_b) + timedelta(minutes=round(gap_minutes / 2))
        half = timedelta(minutes=SYNC_WINDOW_HALF_MINUTES)
        status.common_window_start = midpoint - half
        status.common_window_end = midpoint + half
        status.suggestion = _suggest(midpoint)

    logger.info(
        f"Twins sync: {state}, gap {gap_minutes:.0f} min, rate {status.sync_rate:.0%}"
    )
    return status
