"""Groups consecutive sleep segments into logical sleep blocks (e.g. one night)."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Sequence

from twinfeed.core.constants import (
    SLEEP_BLOCK_GAP_THRESHOLD_MINUTES, NIGHT_SLEEP_MIN_START_HOUR, NIGHT_SEGMENT_END_HOUR,
)
from twinfeed.core.models import SleepEvent

logger = logging.getLogger(__name__)

DEFAULT_GAP_THRESHOLD_MINUTES = SLEEP_BLOCK_GAP_THRESHOLD_MINUTES


# Used by: group_into_sleep_blocks() return; feed_sleep_insights.py
@dataclass
class SleepBlock:
    block_start: datetime
    block_end: datetime
    total_sleep_minutes: float
    total_block_minutes: float
    interruption_count: int
    event_count: int
    events: List[SleepEvent] = field(default_factory=list)


def is_night_segment(sleep: SleepEvent) -> bool:
    hour = sleep.start.hour
    return hour >= NIGHT_SLEEP_MIN_START_HOUR or hour < NIGHT_SEGMENT_END_HOUR


# Used by: feed_sleep_insights.py (night wakings)
def group_into_sleep_blocks(
    sleeps: Sequence[SleepEvent],
    gap_threshold_minutes: float = DEFAULT_GAP_THRESHOLD_MINUTES
) -> List[SleepBlock]:
    """Completed sleeps within gap_threshold_minutes of each other are grouped together."""
    completed = sorted((s for s in sleeps if s.is_complete), key=lambda s: s.start)
    if not completed:
        return []

    blocks = []
    current_block = [completed[0]]

    for curr in completed[1:]:
        prev = current_block[-1]
        gap = (curr.start - prev.end).total_seconds() / 60.0

        if gap <= gap_threshold_minutes:
            current_block.append(curr)
        else:
            blocks.append(_build_block(current_block))
            current_block = [curr]

    blocks.append(_build_block(current_block))

    return blocks


# Used by: feed_sleep_insights.py
def group_night_blocks(sleeps: Sequence[SleepEvent]) -> List[SleepBlock]:
    """Night blocks only: blocks opened by a segment starting in the evening."""
    segments = [s for s in sleeps if is_night_segment(s)]
    blocks = group_into_sleep_blocks(segments)
    nights = [b for b in blocks if b.block_start.hour >= NIGHT_SLEEP_MIN_START_HOUR]
    logger.debug(f"{len(nights)} night block(s) from {len(segments)} segment(s)")
    return nights


# Used by: group_into_sleep_blocks()
def _build_block(segments: List[SleepEvent]) -> SleepBlock:
    block_start = segments[0].start
    block_end = max(s.end for s in segments)
    total_sleep = sum(s.duration_min for s in segments)
    total_block = (block_end - block_start).total_seconds() / 60.0

    return SleepBlock(
        block_start=block_start,
        block_end=block_end,
        total_sleep_minutes=total_sleep,
        total_block_minutes=total_block,
        interruption_count=len(segments) - 1,
        event_count=len(segments),
        events=list(segments),
    )
