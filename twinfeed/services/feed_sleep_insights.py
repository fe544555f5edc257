"""Feed ↔ sleep observations surfaced to the parents.

A fixed catalog of hypothesis tests. Most are split probes: pair each sleep
(or day) with the feed observation its window rule selects, split the pairs
at the recency-weighted median of the key (or at a fixed threshold), and
report the weighted-average outcome difference between both halves when it
exceeds the probe's noise threshold. Two probes need custom pairing logic,
and one contextual insight rotates with the time of day.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from statistics import mean, median
from typing import Callable, Dict, List, Literal, Optional, Sequence, Tuple

from twinfeed.core.constants import (
    INSIGHT_MIN_DATA_POINTS, INSIGHT_MIN_PER_GROUP,
    INSIGHT_CONFIDENCE_STRONG, INSIGHT_CONFIDENCE_MODERATE,
    PRE_NAP_FEED_WINDOW_MINUTES, POST_NAP_FEED_WINDOW_MINUTES, LONG_NAP_MINUTES,
    CLUSTER_WINDOW_MINUTES, CLUSTER_MIN_FEEDS,
    CLUSTER_EPISODE_GAP_MINUTES, CLUSTER_SLEEP_WINDOW_MINUTES, CLUSTER_MIN_EPISODES,
    CLUSTER_SLEEP_NOISE_MINUTES,
    WAKE_WINDOW_MIN_MINUTES, INTER_NAP_MAX_MINUTES, FEED_TO_NAP_MAX_MINUTES,
    MORNING_NAP_END_HOUR, AFTERNOON_NAP_START_HOUR,
    EVENING_START_HOUR, EVENING_END_HOUR, SLOT_MORNING_START,
)
from twinfeed.core.models import FeedEvent, Profile, SleepEvent
from twinfeed.services.sleep_analyzer import find_last_feed_before, is_daytime_nap, is_night_sleep
from twinfeed.services.slot_model import slot_id_for_hour
from twinfeed.utils.recency import (
    filter_recent_feeds, filter_recent_sleeps, percentile, recency_weight,
    weighted_avg, weighted_median,
)
from twinfeed.utils.sleep_blocks import group_night_blocks

logger = logging.getLogger(__name__)

InsightConfidence = Literal["forte", "moderee", "faible"]


@dataclass
class FeedSleepInsight:
    id: str
    subject: str
    label: str
    observation: str
    data_points: int
    confidence: InsightConfidence
    stat: Optional[str] = None


@dataclass
class FeedSleepAnalysis:
    subject: str
    insights: List[FeedSleepInsight]
    computed_at: datetime


@dataclass
class Observation:
    key: float
    outcome: float
    at: datetime


@dataclass
class ProbeData:
    profile: Profile
    feeds: List[FeedEvent]
    bottles: List[FeedEvent]
    sleeps: List[SleepEvent]
    naps: List[SleepEvent]
    nights: List[SleepEvent]
    now: datetime

    @property
    def name(self) -> str:
        return self.profile.name


def insight_confidence(data_points: int) -> InsightConfidence:
    if data_points >= INSIGHT_CONFIDENCE_STRONG:
        return "forte"
    if data_points >= INSIGHT_CONFIDENCE_MODERATE:
        return "moderee"
    return "faible"


def format_clock(minutes_of_day: float) -> str:
    """1290 → "21h30"."""
    total = round(minutes_of_day)
    return f"{total // 60}h{total % 60:02d}"


def format_duration(minutes: float) -> str:
    """375 → "6h15", 360 → "6h"."""
    total = round(minutes)
    hours, rest = divmod(total, 60)
    return f"{hours}h{rest:02d}" if rest else f"{hours}h"


def _format_amount(value: float) -> str:
    return str(round(value))


def _signed(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def _minutes(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 60.0


def find_first_feed_after(
    feeds: Sequence[FeedEvent],
    after: datetime,
    max_minutes_after: float
) -> Optional[FeedEvent]:
    """Earliest feed strictly after `after`, at most `max_minutes_after` later."""
    latest = after + timedelta(minutes=max_minutes_after)
    best = None
    for feed in feeds:
        if after < feed.timestamp <= latest:
            if best is None or feed.timestamp < best.timestamp:
                best = feed
    return best


def _bottle_total(bottles: Sequence[FeedEvent], day: date, start_hour: int, end_hour: int) -> float:
    return sum(
        f.volume_ml for f in bottles
        if f.timestamp.date() == day and start_hour <= f.timestamp.hour < end_hour
    )


def _weighted_outcome(observations: Sequence[Observation], now: datetime) -> float:
    return weighted_avg((o.outcome, recency_weight(o.at, now)) for o in observations)


# ── PAIRING RULES ────────────────────────────────────────────────────────────

def _pre_nap_bottle(d: ProbeData) -> List[Observation]:
    pairs = []
    for nap in d.naps:
        bottle = find_last_feed_before(d.bottles, nap.start, PRE_NAP_FEED_WINDOW_MINUTES)
        if bottle:
            pairs.append(Observation(bottle.volume_ml, nap.duration_min, nap.start))
    return pairs


def _nap_then_bottle_volume(d: ProbeData) -> List[Observation]:
    pairs = []
    for nap in d.naps:
        bottle = find_first_feed_after(d.bottles, nap.end, POST_NAP_FEED_WINDOW_MINUTES)
        if bottle:
            pairs.append(Observation(nap.duration_min, bottle.volume_ml, nap.start))
    return pairs


def _nap_then_feed_latency(d: ProbeData) -> List[Observation]:
    pairs = []
    for nap in d.naps:
        feed = find_first_feed_after(d.feeds, nap.end, POST_NAP_FEED_WINDOW_MINUTES)
        if feed:
            pairs.append(Observation(nap.duration_min, _minutes(feed.timestamp, nap.end), nap.start))
    return pairs


def _evening_volume_night(d: ProbeData) -> List[Observation]:
    by_day: Dict[date, Observation] = {}
    for night in d.nights:
        day = night.start.date()
        volume = _bottle_total(d.bottles, day, EVENING_START_HOUR, EVENING_END_HOUR)
        if volume > 0:
            by_day[day] = Observation(volume, night.duration_min, night.start)
    return list(by_day.values())


def _wake_window_nap(d: ProbeData) -> List[Observation]:
    completed = [s for s in d.sleeps if s.is_complete]
    pairs = []
    for nap in d.naps:
        previous = [s for s in completed if s.end <= nap.start]
        if not previous:
            continue
        awake = _minutes(nap.start, max(s.end for s in previous))
        if WAKE_WINDOW_MIN_MINUTES <= awake <= INTER_NAP_MAX_MINUTES:
            pairs.append(Observation(awake, nap.duration_min, nap.start))
    return pairs


def _bedtime_bottle_night(d: ProbeData) -> List[Observation]:
    pairs = []
    for night in d.nights:
        bottle = find_last_feed_before(d.bottles, night.start, PRE_NAP_FEED_WINDOW_MINUTES)
        if bottle:
            pairs.append(Observation(bottle.volume_ml, night.duration_min, night.start))
    return pairs


def _nap_to_next_nap(d: ProbeData) -> List[Observation]:
    pairs = []
    for prev, curr in zip(d.naps, d.naps[1:]):
        if prev.start.date() != curr.start.date():
            continue
        gap = _minutes(curr.start, prev.end)
        if 0 < gap < INTER_NAP_MAX_MINUTES:
            pairs.append(Observation(prev.duration_min, gap, prev.start))
    return pairs


def _daytime_volume_night(d: ProbeData) -> List[Observation]:
    pairs = []
    for night in d.nights:
        volume = _bottle_total(d.bottles, night.start.date(), SLOT_MORNING_START, EVENING_START_HOUR)
        if volume > 0:
            pairs.append(Observation(volume, night.duration_min, night.start))
    return pairs


def _bedtime_clock_night(d: ProbeData) -> List[Observation]:
    return [
        Observation(n.start.hour * 60 + n.start.minute, n.duration_min, n.start)
        for n in d.nights
    ]


def _morning_vs_afternoon_nap(d: ProbeData) -> List[Observation]:
    by_day: Dict[date, List[SleepEvent]] = defaultdict(list)
    for nap in d.naps:
        by_day[nap.start.date()].append(nap)

    pairs = []
    for naps in by_day.values():
        morning = next((n for n in naps if n.start.hour < MORNING_NAP_END_HOUR), None)
        afternoon = next((n for n in naps if n.start.hour >= AFTERNOON_NAP_START_HOUR), None)
        if morning and afternoon:
            pairs.append(Observation(morning.duration_min, afternoon.duration_min, morning.start))
    return pairs


def _day_naps_night(d: ProbeData) -> List[Observation]:
    pairs = []
    for night in d.nights:
        day = night.start.date()
        nap_total = sum(n.duration_min for n in d.naps if n.start.date() == day)
        if nap_total > 0:
            pairs.append(Observation(nap_total, night.duration_min, night.start))
    return pairs


def _night_then_morning_bottle(d: ProbeData) -> List[Observation]:
    pairs = []
    for night in d.nights:
        bottle = find_first_feed_after(d.bottles, night.end, PRE_NAP_FEED_WINDOW_MINUTES)
        if bottle:
            pairs.append(Observation(night.duration_min, bottle.volume_ml, night.start))
    return pairs


def _nursing_before_nap(d: ProbeData) -> List[Observation]:
    pairs = []
    for nap in d.naps:
        feed = find_last_feed_before(d.feeds, nap.start, PRE_NAP_FEED_WINDOW_MINUTES)
        if feed:
            is_nursing = 1.0 if feed.type == "nursing" else 0.0
            pairs.append(Observation(is_nursing, nap.duration_min, nap.start))
    return pairs


# ── SPLIT PROBE CATALOG ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class SplitProbe:
    """Median split by default; with `fixed_split`, keys >= the split form the high group."""
    id: str
    label: str
    template: str  # kwargs: name, threshold, abs_diff, direction
    pair: Callable[[ProbeData], List[Observation]]
    directions: Tuple[str, str]  # (high group above, high group below)
    unit: str
    noise_threshold: float
    fixed_split: Optional[float] = None
    threshold_format: Callable[[float], str] = _format_amount


SPLIT_PROBES: List[SplitProbe] = [
    SplitProbe(
        id="pre-sleep-feed",
        label="Biberon avant sieste",
        template=(
            "Quand le dernier biberon avant la sieste est plus gros (>{threshold} ml), "
            "les siestes de {name} sont en moyenne {abs_diff} min {direction}."
        ),
        pair=_pre_nap_bottle,
        directions=("plus longues", "plus courtes"),
        unit="min",
        noise_threshold=5,
    ),
    SplitProbe(
        id="post-nap-appetite",
        label="Appétit post-sieste",
        template="Après une longue sieste (≥{threshold} min), {name} mange en moyenne {abs_diff} ml {direction}.",
        pair=_nap_then_bottle_volume,
        directions=("de plus", "de moins"),
        unit="ml",
        noise_threshold=5,
        fixed_split=LONG_NAP_MINUTES,
    ),
    SplitProbe(
        id="post-nap-latency",
        label="Délai sieste → repas",
        template="Après une longue sieste (≥{threshold} min), {name} redemande {abs_diff} min {direction}.",
        pair=_nap_then_feed_latency,
        directions=("plus tard", "plus tôt"),
        unit="min",
        noise_threshold=3,
        fixed_split=LONG_NAP_MINUTES,
    ),
    SplitProbe(
        id="evening-night",
        label="Repas du soir & nuit",
        template=(
            "Les soirs où {name} mange plus au biberon (>{threshold} ml total), "
            "le premier sommeil de nuit dure en moyenne {abs_diff} min {direction}."
        ),
        pair=_evening_volume_night,
        directions=("de plus", "de moins"),
        unit="min",
        noise_threshold=5,
    ),
    SplitProbe(
        id="wake-window-nap",
        label="Temps d'éveil & sieste",
        template=(
            "Quand {name} reste éveillée plus de {threshold} min avant de dormir, "
            "ses siestes sont en moyenne {abs_diff} min {direction}."
        ),
        pair=_wake_window_nap,
        directions=("plus longues", "plus courtes"),
        unit="min",
        noise_threshold=5,
    ),
    SplitProbe(
        id="bedtime-bottle",
        label="Biberon du coucher",
        template="Quand le biberon du coucher dépasse {threshold} ml, la nuit de {name} dure en moyenne {abs_diff} min {direction}.",
        pair=_bedtime_bottle_night,
        directions=("de plus", "de moins"),
        unit="min",
        noise_threshold=10,
    ),
    SplitProbe(
        id="nap-spacing",
        label="Espacement des siestes",
        template=(
            "Après une sieste de plus de {threshold} min, la sieste suivante de {name} "
            "arrive en moyenne {abs_diff} min {direction}."
        ),
        pair=_nap_to_next_nap,
        directions=("plus tard", "plus tôt"),
        unit="min",
        noise_threshold=10,
    ),
    SplitProbe(
        id="daytime-volume-night",
        label="Volume de la journée & nuit",
        template="Les jours où {name} boit plus de {threshold} ml en journée, sa nuit dure en moyenne {abs_diff} min {direction}.",
        pair=_daytime_volume_night,
        directions=("de plus", "de moins"),
        unit="min",
        noise_threshold=10,
    ),
    SplitProbe(
        id="bedtime-clock",
        label="Heure du coucher & nuit",
        template="Quand {name} se couche après {threshold}, sa nuit dure en moyenne {abs_diff} min {direction}.",
        pair=_bedtime_clock_night,
        directions=("de plus", "de moins"),
        unit="min",
        noise_threshold=10,
        threshold_format=format_clock,
    ),
    SplitProbe(
        id="morning-afternoon-nap",
        label="Sieste du matin & après-midi",
        template=(
            "Quand la sieste du matin de {name} dépasse {threshold} min, "
            "celle de l'après-midi dure en moyenne {abs_diff} min {direction}."
        ),
        pair=_morning_vs_afternoon_nap,
        directions=("de plus", "de moins"),
        unit="min",
        noise_threshold=5,
    ),
    SplitProbe(
        id="day-naps-night",
        label="Siestes & nuit",
        template="Les jours où {name} dort plus de {threshold} min en siestes, sa nuit dure en moyenne {abs_diff} min {direction}.",
        pair=_day_naps_night,
        directions=("de plus", "de moins"),
        unit="min",
        noise_threshold=10,
    ),
    SplitProbe(
        id="night-morning-bottle",
        label="Nuit & premier biberon",
        template="Après une nuit de plus de {threshold}, le premier biberon de {name} fait en moyenne {abs_diff} ml {direction}.",
        pair=_night_then_morning_bottle,
        directions=("de plus", "de moins"),
        unit="ml",
        noise_threshold=5,
        threshold_format=format_duration,
    ),
    SplitProbe(
        id="nursing-nap",
        label="Tétée ou biberon avant sieste",
        template="Après une tétée, les siestes de {name} sont en moyenne {abs_diff} min {direction} qu'après un biberon.",
        pair=_nursing_before_nap,
        directions=("plus longues", "plus courtes"),
        unit="min",
        noise_threshold=5,
        fixed_split=1.0,
    ),
]


# Used by: analyze_feed_sleep_links
def evaluate_split_probe(probe: SplitProbe, data: ProbeData) -> Optional[FeedSleepInsight]:
    observations = probe.pair(data)
    if len(observations) < INSIGHT_MIN_DATA_POINTS:
        return None

    now = data.now
    if probe.fixed_split is not None:
        split = probe.fixed_split
        high = [o for o in observations if o.key >= split]
        low = [o for o in observations if o.key < split]
    else:
        split = weighted_median((o.key, recency_weight(o.at, now)) for o in observations)
        high = [o for o in observations if o.key > split]
        low = [o for o in observations if o.key <= split]

    if len(high) < INSIGHT_MIN_PER_GROUP or len(low) < INSIGHT_MIN_PER_GROUP:
        return None

    diff = round(_weighted_outcome(high, now) - _weighted_outcome(low, now))
    if abs(diff) < probe.noise_threshold:
        return None

    direction = probe.directions[0] if diff > 0 else probe.directions[1]
    return FeedSleepInsight(
        id=f"{probe.id}-{data.profile.key}",
        subject=data.profile.key,
        label=probe.label,
        observation=probe.template.format(
            name=data.name,
            threshold=probe.threshold_format(split),
            abs_diff=abs(diff),
            direction=direction,
        ),
        data_points=len(observations),
        confidence=insight_confidence(len(observations)),
        stat=f"{_signed(diff)} {probe.unit}",
    )


# ── CUSTOM PROBES ────────────────────────────────────────────────────────────

def _cluster_then_sleep(d: ProbeData) -> Optional[FeedSleepInsight]:
    """Sleep right after a cluster-feeding episode vs the usual sleep length."""
    episode_ends: List[datetime] = []
    window = timedelta(minutes=CLUSTER_WINDOW_MINUTES)
    for feed in d.feeds:
        in_window = [f for f in d.feeds if feed.timestamp <= f.timestamp <= feed.timestamp + window]
        if len(in_window) < CLUSTER_MIN_FEEDS:
            continue
        last_in_cluster = in_window[-1].timestamp
        if not episode_ends or _minutes(last_in_cluster, episode_ends[-1]) > CLUSTER_EPISODE_GAP_MINUTES:
            episode_ends.append(last_in_cluster)

    if len(episode_ends) < CLUSTER_MIN_EPISODES:
        return None

    completed = [s for s in d.sleeps if s.is_complete]
    post_cluster = []
    for end in episode_ends:
        next_sleep = next(
            (s for s in completed if s.start > end and _minutes(s.start, end) <= CLUSTER_SLEEP_WINDOW_MINUTES),
            None
        )
        if next_sleep:
            post_cluster.append(next_sleep.duration_min)

    if len(post_cluster) < INSIGHT_MIN_DATA_POINTS:
        return None

    usual = weighted_avg((s.duration_min, recency_weight(s.start, d.now)) for s in completed)
    diff = round(mean(post_cluster) - usual)
    if abs(diff) < CLUSTER_SLEEP_NOISE_MINUTES:
        return None

    direction = "de plus" if diff > 0 else "de moins"
    return FeedSleepInsight(
        id=f"cluster-sleep-{d.profile.key}",
        subject=d.profile.key,
        label="Cluster feeding & sommeil",
        observation=(
            f"Après un épisode de cluster feeding, {d.name} dort en moyenne "
            f"{abs(diff)} min {direction} que d'habitude."
        ),
        data_points=len(post_cluster),
        confidence=insight_confidence(len(post_cluster)),
        stat=f"{_signed(diff)} min",
    )


def _feed_to_sleep_latency(d: ProbeData) -> Optional[FeedSleepInsight]:
    """Typical delay between the last feed and falling asleep for a nap."""
    samples = []
    for nap in d.naps:
        feed = find_last_feed_before(d.feeds, nap.start, FEED_TO_NAP_MAX_MINUTES)
        if feed is None:
            continue
        latency = _minutes(nap.start, feed.timestamp)
        if latency > 0:
            samples.append((latency, recency_weight(nap.start, d.now)))

    if len(samples) < INSIGHT_MIN_DATA_POINTS:
        return None

    values = [v for v, _ in samples]
    typical = round(weighted_median(samples))
    p25 = round(percentile(values, 25))
    p75 = round(percentile(values, 75))

    return FeedSleepInsight(
        id=f"feed-sleep-latency-{d.profile.key}",
        subject=d.profile.key,
        label="Délai repas → sieste",
        observation=(
            f"{d.name} s'endort typiquement {typical} min après le dernier repas "
            f"(entre {p25} et {p75} min le plus souvent)."
        ),
        data_points=len(samples),
        confidence=insight_confidence(len(samples)),
        stat=f"~{typical} min",
    )


CUSTOM_PROBES: List[Callable[[ProbeData], Optional[FeedSleepInsight]]] = [
    _cluster_then_sleep,
    _feed_to_sleep_latency,
]


# ── TIME-OF-DAY CONTEXT ──────────────────────────────────────────────────────

def _morning_context(d: ProbeData) -> Optional[FeedSleepInsight]:
    morning_bottles = [f for f in d.bottles if 6 <= f.timestamp.hour < 10]
    morning_naps = [n for n in d.naps if 8 <= n.start.hour < 12]
    if len(morning_bottles) < 3 or len(morning_naps) < 3:
        return None

    typical_volume = median(f.volume_ml for f in morning_bottles)
    big, small = [], []
    for nap in morning_naps:
        bottle = find_last_feed_before(d.bottles, nap.start, FEED_TO_NAP_MAX_MINUTES)
        if bottle is None:
            continue
        (big if bottle.volume_ml > typical_volume else small).append(nap.duration_min)

    if len(big) < 2 or len(small) < 2:
        return None

    avg_big = round(mean(big))
    avg_small = round(mean(small))
    today = [f for f in morning_bottles if f.timestamp.date() == d.now.date()]
    last_volume = f"{round(today[-1].volume_ml)} ml" if today else "?"
    return FeedSleepInsight(
        id=f"hourly-morning-{d.profile.key}",
        subject=d.profile.key,
        label="Matin & sieste",
        observation=(
            f"Ce matin, {d.name} a bu {last_volume} — après un biberon >{round(typical_volume)} ml, "
            f"ses siestes du matin durent ~{avg_big} min contre ~{avg_small} min sinon."
        ),
        data_points=len(big) + len(small),
        confidence=insight_confidence(len(big) + len(small)),
        stat=f"{avg_big} vs {avg_small} min",
    )


def _midday_context(d: ProbeData) -> Optional[FeedSleepInsight]:
    midday_naps = [n for n in d.naps if 11 <= n.start.hour < 15]
    other_naps = [n for n in d.naps if n.start.hour < 11 or n.start.hour >= 15]
    if len(midday_naps) < 3:
        return None

    latencies = []
    for nap in midday_naps:
        bottle = find_last_feed_before(d.bottles, nap.start, FEED_TO_NAP_MAX_MINUTES)
        if bottle:
            latencies.append(_minutes(nap.start, bottle.timestamp))

    avg_midday = round(mean(n.duration_min for n in midday_naps))
    observation = f"La sieste de midi de {d.name} dure en moyenne {avg_midday} min"
    if len(other_naps) >= 2:
        observation += f" (contre {round(mean(n.duration_min for n in other_naps))} min pour les autres siestes)"
    if len(latencies) >= 2:
        observation += f". Délai repas → sieste : ~{round(mean(latencies))} min"
    observation += "."

    return FeedSleepInsight(
        id=f"hourly-midday-{d.profile.key}",
        subject=d.profile.key,
        label="Sieste de midi",
        observation=observation,
        data_points=len(midday_naps),
        confidence=insight_confidence(len(midday_naps)),
        stat=f"~{avg_midday} min",
    )


def _afternoon_context(d: ProbeData) -> Optional[FeedSleepInsight]:
    naps_by_day: Dict[date, List[SleepEvent]] = defaultdict(list)
    for nap in d.naps:
        naps_by_day[nap.start.date()].append(nap)
    if len(naps_by_day) < 3:
        return None

    avg_naps = round(mean(len(naps) for naps in naps_by_day.values()), 1)
    third_naps = [naps[2].duration_min for naps in naps_by_day.values() if len(naps) >= 3]

    observation = f"{d.name} fait en moyenne {avg_naps} siestes par jour"
    if len(third_naps) >= 2:
        observation += f". La 3e sieste dure ~{round(mean(third_naps))} min en moyenne"
    observation += "."

    return FeedSleepInsight(
        id=f"hourly-afternoon-{d.profile.key}",
        subject=d.profile.key,
        label="Siestes de la journée",
        observation=observation,
        data_points=len(naps_by_day),
        confidence=insight_confidence(len(naps_by_day)),
        stat=f"~{avg_naps} siestes/jour",
    )


def _evening_context(d: ProbeData) -> Optional[FeedSleepInsight]:
    observations = _evening_volume_night(d)
    if len(observations) < INSIGHT_MIN_DATA_POINTS:
        return None

    split = weighted_median((o.key, recency_weight(o.at, d.now)) for o in observations)
    big = [o for o in observations if o.key > split]
    small = [o for o in observations if o.key <= split]
    if len(big) < 2 or len(small) < 2:
        return None

    avg_big = round(_weighted_outcome(big, d.now))
    avg_small = round(_weighted_outcome(small, d.now))
    diff = avg_big - avg_small
    return FeedSleepInsight(
        id=f"hourly-evening-{d.profile.key}",
        subject=d.profile.key,
        label="Volume du soir & nuit",
        observation=(
            f"Quand {d.name} boit plus de {round(split)} ml le soir, son premier sommeil de nuit "
            f"dure ~{avg_big} min contre ~{avg_small} min ({_signed(diff)} min)."
        ),
        data_points=len(observations),
        confidence=insight_confidence(len(observations)),
        stat=f"{_signed(diff)} min",
    )


def _night_context(d: ProbeData) -> Optional[FeedSleepInsight]:
    blocks = group_night_blocks(d.sleeps)
    if len(blocks) < 3:
        return None

    first_stretch = round(weighted_avg(
        (b.events[0].duration_min, recency_weight(b.block_start, d.now)) for b in blocks
    ))
    wakings = round(mean(b.interruption_count for b in blocks), 1)
    stretch = format_duration(first_stretch)

    observation = (
        f"Le premier stretch de nuit de {d.name} dure en moyenne {stretch}. "
        f"En moyenne {wakings} réveil{'s' if wakings > 1 else ''} par nuit."
    )
    return FeedSleepInsight(
        id=f"hourly-night-{d.profile.key}",
        subject=d.profile.key,
        label="Nuit en cours",
        observation=observation,
        data_points=len(blocks),
        confidence=insight_confidence(len(blocks)),
        stat=f"~{stretch} de stretch",
    )


HOURLY_CONTEXT: Dict[str, Callable[[ProbeData], Optional[FeedSleepInsight]]] = {
    "morning": _morning_context,
    "midday": _midday_context,
    "afternoon": _afternoon_context,
    "evening": _evening_context,
    "night": _night_context,
}


# Used by: forecast.py
def analyze_feed_sleep_links(
    profile: Profile,
    feeds: Sequence[FeedEvent],
    sleeps: Sequence[SleepEvent],
    now: datetime
) -> FeedSleepAnalysis:
    """All surfaced feed/sleep observations for one subject, catalog order first."""
    feeds = sorted(
        filter_recent_feeds((f for f in feeds if f.timestamp <= now), now),
        key=lambda f: f.timestamp
    )
    sleeps = sorted(
        filter_recent_sleeps((s for s in sleeps if s.start <= now), now),
        key=lambda s: s.start
    )
    completed = [s for s in sleeps if s.is_complete]

    data = ProbeData(
        profile=profile,
        feeds=feeds,
        bottles=[f for f in feeds if f.has_volume],
        sleeps=completed,
        naps=[s for s in completed if is_daytime_nap(s)],
        nights=[s for s in completed if is_night_sleep(s)],
        now=now,
    )

    insights = []
    for probe in SPLIT_PROBES:
        insight = evaluate_split_probe(probe, data)
        if insight:
            insights.append(insight)
    for custom_probe in CUSTOM_PROBES:
        insight = custom_probe(data)
        if insight:
            insights.append(insight)

    contextual = HOURLY_CONTEXT[slot_id_for_hour(now.hour)](data)
    if contextual:
        insights.append(contextual)

    logger.info(f"{profile.key}: {len(insights)} feed/sleep insight(s)")
    return FeedSleepAnalysis(subject=profile.key, insights=insights, computed_at=now)
