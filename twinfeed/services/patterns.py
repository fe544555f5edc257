"""Flags the short-term feeding regimes currently active for a subject.

The catalog is a declarative table: each rule pairs a trigger (returning
template arguments when active, None otherwise) with its modifiers and
message. Detection is stateless and re-derived on every call; rules are
evaluated, and their modifiers later applied, in catalog order.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from twinfeed.core.constants import (
    CLUSTER_WINDOW_MINUTES, CLUSTER_MIN_FEEDS, CLUSTER_TIMING_MODIFIER,
    COMPENSATION_RATIO, COMPENSATION_TIMING_MODIFIER,
    EVENING_START_HOUR, EVENING_END_HOUR, EVENING_TIMING_MODIFIER, EVENING_VOLUME_MODIFIER,
    NIGHT_START_HOUR, NIGHT_END_HOUR, NIGHT_TIMING_MODIFIER, NIGHT_VOLUME_MODIFIER,
    POST_NAP_MIN_DURATION_MINUTES, POST_NAP_RECENT_MINUTES,
    POST_NAP_TIMING_MODIFIER, POST_NAP_VOLUME_MODIFIER,
    GROWTH_RECENT_HOURS, GROWTH_BASELINE_DAYS, GROWTH_MIN_RECENT_SAMPLES,
    GROWTH_MIN_BASELINE_SAMPLES, GROWTH_RATIO, GROWTH_TIMING_MODIFIER, GROWTH_VOLUME_MODIFIER,
    DESYNC_GAP_MINUTES,
)
from twinfeed.core.models import DetectedPattern, FeedEvent, Profile, SleepEvent
from twinfeed.services.slot_model import SlotStatistics

logger = logging.getLogger(__name__)


@dataclass
class PatternContext:
    profile: Profile
    feeds: Sequence[FeedEvent]
    sleeps: Sequence[SleepEvent]
    sibling_feeds: Sequence[FeedEvent]
    sibling_name: Optional[str]
    now: datetime
    slot_stats: SlotStatistics

    @property
    def last_feed(self) -> Optional[FeedEvent]:
        return self.feeds[-1] if self.feeds else None


@dataclass(frozen=True)
class PatternRule:
    id: str
    label: str
    template: str
    trigger: Callable[[PatternContext], Optional[Dict[str, Any]]]
    timing_modifier: Optional[float] = None
    volume_modifier: Optional[float] = None


def _minutes_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier).total_seconds() / 60.0


def _cluster(ctx: PatternContext) -> Optional[Dict[str, Any]]:
    recent = [
        f for f in ctx.feeds
        if 0 <= _minutes_between(ctx.now, f.timestamp) <= CLUSTER_WINDOW_MINUTES
    ]
    if len(recent) >= CLUSTER_MIN_FEEDS:
        return {"count": len(recent)}
    return None


def _compensation(ctx: PatternContext) -> Optional[Dict[str, Any]]:
    last = ctx.last_feed
    if last is None or not last.has_volume:
        return None
    slot_mean = ctx.slot_stats.mean_ml_for_hour(last.timestamp.hour)
    if slot_mean <= 0:
        return None
    ratio = last.volume_ml / slot_mean
    if ratio < COMPENSATION_RATIO:
        return {"pct": round(ratio * 100)}
    return None


def _evening(ctx: PatternContext) -> Optional[Dict[str, Any]]:
    if EVENING_START_HOUR <= ctx.now.hour < EVENING_END_HOUR:
        return {}
    return None


def _night_light(ctx: PatternContext) -> Optional[Dict[str, Any]]:
    if ctx.now.hour >= NIGHT_START_HOUR or ctx.now.hour < NIGHT_END_HOUR:
        return {}
    return None


def _post_nap(ctx: PatternContext) -> Optional[Dict[str, Any]]:
    for sleep in reversed(ctx.sleeps):
        if not sleep.is_complete or sleep.duration_min < POST_NAP_MIN_DURATION_MINUTES:
            continue
        since_end = _minutes_between(ctx.now, sleep.end)
        if 0 <= since_end <= POST_NAP_RECENT_MINUTES:
            return {"duration": round(sleep.duration_min)}
    return None


def _growth(ctx: PatternContext) -> Optional[Dict[str, Any]]:
    recent_cutoff = ctx.now - timedelta(hours=GROWTH_RECENT_HOURS)
    baseline_cutoff = ctx.now - timedelta(days=GROWTH_BASELINE_DAYS)
    bottles = [f for f in ctx.feeds if f.has_volume and f.timestamp <= ctx.now]
    recent = [f.volume_ml for f in bottles if f.timestamp >= recent_cutoff]
    baseline = [f.volume_ml for f in bottles if f.timestamp >= baseline_cutoff]

    if len(recent) < GROWTH_MIN_RECENT_SAMPLES or len(baseline) < GROWTH_MIN_BASELINE_SAMPLES:
        return None

    avg_recent = sum(recent) / len(recent)
    avg_baseline = sum(baseline) / len(baseline)
    if avg_recent > avg_baseline * GROWTH_RATIO:
        return {"pct": round((avg_recent / avg_baseline - 1) * 100)}
    return None


def _desync(ctx: PatternContext) -> Optional[Dict[str, Any]]:
    last = ctx.last_feed
    if last is None or not ctx.sibling_feeds:
        return None
    gap = abs(_minutes_between(last.timestamp, ctx.sibling_feeds[-1].timestamp))
    if gap > DESYNC_GAP_MINUTES:
        return {"gap": round(gap), "sibling": ctx.sibling_name or "l'autre bébé"}
    return None


PATTERN_CATALOG: List[PatternRule] = [
    PatternRule(
        id="CLUSTER",
        label="Cluster feeding",
        template="{count} repas en moins de 3h — l'intervalle suivant sera probablement plus long",
        trigger=_cluster,
        timing_modifier=CLUSTER_TIMING_MODIFIER,
    ),
    PatternRule(
        id="COMPENSATION",
        label="Compensation",
        template="Repas précédent à {pct}% de la moyenne du créneau — prochain repas probablement plus tôt",
        trigger=_compensation,
        timing_modifier=COMPENSATION_TIMING_MODIFIER,
    ),
    PatternRule(
        id="EVENING",
        label="Effet soirée",
        template="Créneau soirée (18h-22h) — intervalles plus courts, volumes plus importants",
        trigger=_evening,
        timing_modifier=EVENING_TIMING_MODIFIER,
        volume_modifier=EVENING_VOLUME_MODIFIER,
    ),
    PatternRule(
        id="NIGHT_LIGHT",
        label="Mode nuit",
        template="Créneau nocturne — intervalles plus longs, volumes réduits",
        trigger=_night_light,
        timing_modifier=NIGHT_TIMING_MODIFIER,
        volume_modifier=NIGHT_VOLUME_MODIFIER,
    ),
    PatternRule(
        id="POST_NAP",
        label="Post-sieste",
        template="Sieste de {duration} min terminée récemment — faim probablement plus marquée",
        trigger=_post_nap,
        timing_modifier=POST_NAP_TIMING_MODIFIER,
        volume_modifier=POST_NAP_VOLUME_MODIFIER,
    ),
    PatternRule(
        id="GROWTH",
        label="Pic de croissance",
        template="Appétit en hausse de {pct}% sur 48h — possible pic de croissance",
        trigger=_growth,
        timing_modifier=GROWTH_TIMING_MODIFIER,
        volume_modifier=GROWTH_VOLUME_MODIFIER,
    ),
    PatternRule(
        id="DESYNC",
        label="Désynchronisation",
        template="Écart de {gap} min avec {sibling}",
        trigger=_desync,
    ),
]


# Used by: predictor.py, forecast.py
def detect_patterns(
    profile: Profile,
    feeds: Sequence[FeedEvent],
    sleeps: Sequence[SleepEvent],
    sibling_feeds: Sequence[FeedEvent],
    now: datetime,
    sibling_name: Optional[str] = None,
    slot_stats: Optional[SlotStatistics] = None
) -> List[DetectedPattern]:
    """Active regimes for one subject, in catalog order."""
    ctx = PatternContext(
        profile=profile,
        feeds=feeds,
        sleeps=sleeps,
        sibling_feeds=sibling_feeds,
        sibling_name=sibling_name,
        now=now,
        slot_stats=slot_stats or SlotStatistics(profile, feeds, now),
    )

    patterns = []
    for rule in PATTERN_CATALOG:
        args = rule.trigger(ctx)
        if args is None:
            continue
        patterns.append(DetectedPattern(
            id=rule.id,
            label=rule.label,
            description=rule.template.format(**args),
            subject=profile.key,
            detected_at=now,
            timing_modifier=rule.timing_modifier,
            volume_modifier=rule.volume_modifier,
        ))

    if patterns:
        logger.debug(f"{profile.key}: active patterns {[p.id for p in patterns]}")
    return patterns
