"""Event records, per-subject profiles and the prediction shapes shared by the engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple

FeedType = Literal["bottle", "nursing"]
SlotId = Literal["morning", "midday", "afternoon", "evening", "night"]
ConfidenceTier = Literal["high", "medium", "low"]


# Used by: every engine module. One logged feed, never mutated in place
@dataclass(frozen=True)
class FeedEvent:
    id: str
    subject: str
    timestamp: datetime
    type: FeedType
    volume_ml: float = 0.0
    duration_min: Optional[float] = None
    notes: Optional[str] = None

    @property
    def has_volume(self) -> bool:
        """Bottles with a logged quantity; nursing volumes are unknown."""
        return self.type == "bottle" and self.volume_ml > 0


# Used by: patterns.py, predictor.py, sleep_analyzer.py, feed_sleep_insights.py, accuracy.py
@dataclass(frozen=True)
class SleepEvent:
    id: str
    subject: str
    start: datetime
    end: Optional[datetime] = None
    duration_min: float = 0.0

    @property
    def is_complete(self) -> bool:
        return self.end is not None

    @property
    def start_hour_decimal(self) -> float:
        return self.start.hour + self.start.minute / 60.0


@dataclass(frozen=True)
class TimeSlot:
    id: SlotId
    hours: Tuple[int, ...]
    mean_ml: float
    std_ml: float
    typical_interval_after_h: float
    peak: bool = False


@dataclass(frozen=True)
class ProfileStats:
    mean_volume_ml: float
    std_volume_ml: float
    typical_range_ml: Tuple[float, float]
    mean_interval_h: float
    median_interval_h: float
    typical_range_h: Tuple[float, float]
    p10_h: float
    p90_h: float


@dataclass(frozen=True)
class Profile:
    name: str
    key: str
    birth_date: str
    stats: ProfileStats
    slots: Tuple[TimeSlot, ...]
    volume_adjustments: Dict[str, float] = field(default_factory=dict)
    interval_adjustments: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class NapWindow:
    start_h: float
    end_h: float

    @property
    def midpoint_h(self) -> float:
        return (self.start_h + self.end_h) / 2


# Used by: sleep_analyzer.py when history is too thin
@dataclass(frozen=True)
class SleepProfile:
    night_duration_min: float
    typical_bedtime_hour: float
    typical_wake_hour: float
    night_feeds: int
    naps_per_day: int
    nap_duration_min: float
    best_nap_times: Tuple[NapWindow, ...]


@dataclass
class DetectedPattern:
    id: str
    label: str
    description: str
    subject: str
    detected_at: datetime
    timing_modifier: Optional[float] = None
    volume_modifier: Optional[float] = None


@dataclass
class Explanation:
    rule_id: str
    text: str
    impact: str  # e.g. "-25% intervalle"
    factor: Optional[float] = None


@dataclass
class TimingPrediction:
    predicted_time: datetime
    confidence_minutes: int
    p10_time: datetime
    p90_time: datetime


@dataclass
class VolumePrediction:
    predicted_ml: int
    confidence_ml: int
    p10_ml: int
    p90_ml: int


@dataclass
class Prediction:
    subject: str
    timing: TimingPrediction
    volume: VolumePrediction
    explanations: List[Explanation]
    confidence: ConfidenceTier
    slot: SlotId
    generated_at: datetime
    profile_fallback: bool = False
    slot_mean_ml: float = 0.0
