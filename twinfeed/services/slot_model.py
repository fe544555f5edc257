"""Time-of-day slot model: static baselines overridden by data-driven statistics."""

import logging
from datetime import datetime
from typing import Dict, List, Sequence

from twinfeed.core.constants import (
    SLOT_MORNING_START, SLOT_MIDDAY_START, SLOT_AFTERNOON_START,
    SLOT_EVENING_START, SLOT_NIGHT_START,
    SLOT_INTERVAL_MIN_H, SLOT_INTERVAL_MAX_H, SLOT_MIN_SAMPLES,
)
from twinfeed.core.models import FeedEvent, Profile, SlotId, TimeSlot
from twinfeed.utils.recency import recency_weight, weighted_avg, weighted_median

logger = logging.getLogger(__name__)

SLOT_ORDER: List[SlotId] = ["morning", "midday", "afternoon", "evening", "night"]


def slot_id_for_hour(hour: int) -> SlotId:
    if SLOT_MORNING_START <= hour < SLOT_MIDDAY_START:
        return "morning"
    if SLOT_MIDDAY_START <= hour < SLOT_AFTERNOON_START:
        return "midday"
    if SLOT_AFTERNOON_START <= hour < SLOT_EVENING_START:
        return "afternoon"
    if SLOT_EVENING_START <= hour < SLOT_NIGHT_START:
        return "evening"
    return "night"


def get_slot(profile: Profile, slot_id: SlotId) -> TimeSlot:
    for slot in profile.slots:
        if slot.id == slot_id:
            return slot
    return profile.slots[0]


def slot_for_hour(profile: Profile, hour: int) -> TimeSlot:
    return get_slot(profile, slot_id_for_hour(hour))


# Used by: SlotStatistics.interval_h
def compute_slot_interval(
    profile: Profile,
    slot_id: SlotId,
    feeds: Sequence[FeedEvent],
    now: datetime
) -> float:
    """Weighted median of intervals (hours) that start in the slot."""
    samples = []
    for prev, curr in zip(feeds, feeds[1:]):
        if slot_id_for_hour(prev.timestamp.hour) != slot_id:
            continue
        gap_h = (curr.timestamp - prev.timestamp).total_seconds() / 3600.0
        if SLOT_INTERVAL_MIN_H < gap_h < SLOT_INTERVAL_MAX_H:
            samples.append((gap_h, recency_weight(curr.timestamp, now)))

    if len(samples) < SLOT_MIN_SAMPLES:
        return get_slot(profile, slot_id).typical_interval_after_h
    return weighted_median(samples)


# Used by: SlotStatistics.mean_ml
def compute_slot_volume(
    profile: Profile,
    slot_id: SlotId,
    feeds: Sequence[FeedEvent],
    now: datetime
) -> float:
    """Weighted mean bottle volume (ml) logged in the slot."""
    samples = [
        (f.volume_ml, recency_weight(f.timestamp, now))
        for f in feeds
        if f.has_volume and slot_id_for_hour(f.timestamp.hour) == slot_id
    ]

    if len(samples) < SLOT_MIN_SAMPLES:
        return get_slot(profile, slot_id).mean_ml
    return weighted_avg(samples)


class SlotStatistics:
    """Per-call memo of slot intervals and volumes for one subject.

    Build one per prediction call and let it go out of scope afterwards;
    it must never outlive the (feeds, now) snapshot it was built from.
    """

    def __init__(self, profile: Profile, feeds: Sequence[FeedEvent], now: datetime):
        self.profile = profile
        self.feeds = feeds
        self.now = now
        self._intervals: Dict[SlotId, float] = {}
        self._volumes: Dict[SlotId, float] = {}

    def interval_h(self, slot_id: SlotId) -> float:
        if slot_id not in self._intervals:
            self._intervals[slot_id] = compute_slot_interval(
                self.profile, slot_id, self.feeds, self.now
            )
            logger.debug(
                f"{self.profile.key}: {slot_id} interval {self._intervals[slot_id]:.2f}h"
            )
        return self._intervals[slot_id]

    def interval_for_hour(self, hour: int) -> float:
        return self.interval_h(slot_id_for_hour(hour))

    def mean_ml(self, slot_id: SlotId) -> float:
        if slot_id not in self._volumes:
            self._volumes[slot_id] = compute_slot_volume(
                self.profile, slot_id, self.feeds, self.now
            )
        return self._volumes[slot_id]

    def mean_ml_for_hour(self, hour: int) -> float:
        return self.mean_ml(slot_id_for_hour(hour))
