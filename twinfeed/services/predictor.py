"""Predicts the next feed (time + volume) for one subject."""

import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from twinfeed.core.constants import (
    SLOT_INTERVAL_MIN_H, SLOT_INTERVAL_MAX_H, SLOT_MIN_SAMPLES,
    FORWARD_STEP_FLOOR_MINUTES, FORWARD_MAX_ITERATIONS,
    POST_NAP_REBASE_LOOKBACK_HOURS, POST_NAP_LATENCY_WINDOW_MINUTES,
    POST_NAP_DEFAULT_LATENCY_MINUTES,
    VOLUME_SMALL_PREV_RATIO, VOLUME_LARGE_PREV_RATIO,
    VOLUME_SMALL_PREV_NUDGE, VOLUME_LARGE_PREV_NUDGE,
    VOLUME_CLAMP_LOW, VOLUME_CLAMP_HIGH,
    CONFIDENCE_HIGH_WEIGHT, CONFIDENCE_MEDIUM_WEIGHT,
    TIMING_SPREAD_MINUTES_PER_HOUR, PROFILE_TIMING_SPREAD_MINUTES_PER_HOUR,
    VOLUME_CONFIDENCE_STD_FRACTION, VOLUME_P10_FLOOR_ML,
)
from twinfeed.core.models import (
    ConfidenceTier, DetectedPattern, Explanation, FeedEvent, Prediction, Profile,
    SleepEvent, SlotId, TimingPrediction, VolumePrediction,
)
from twinfeed.core.settings import settings
from twinfeed.services.patterns import detect_patterns
from twinfeed.services.slot_model import SlotStatistics, get_slot, slot_for_hour, slot_id_for_hour
from twinfeed.utils.recency import (
    filter_recent_feeds, filter_recent_sleeps, recency_weight, weighted_median,
)

logger = logging.getLogger(__name__)

SLOT_LABELS = {
    "morning": "matin",
    "midday": "mi-journée",
    "afternoon": "après-midi",
    "evening": "soir",
    "night": "nuit",
}

# slot → profile volume adjustment key
VOLUME_ADJUSTMENT_KEYS = {
    "evening": "evening_boost",
    "night": "night_reduction",
    "midday": "midday_boost",
}


def format_impact(factor: float, unit: str) -> str:
    """0.75, "intervalle" → "-25% intervalle"."""
    pct = round((factor - 1) * 100)
    sign = "+" if pct > 0 else ""
    return f"{sign}{pct}% {unit}"


def confidence_tier(feeds: Sequence[FeedEvent], now: datetime) -> ConfidenceTier:
    total_weight = sum(recency_weight(f.timestamp, now) for f in feeds)
    if total_weight >= CONFIDENCE_HIGH_WEIGHT:
        return "high"
    if total_weight >= CONFIDENCE_MEDIUM_WEIGHT:
        return "medium"
    return "low"


# Used by: predict_next_feed, _predict_from_profile, _post_nap_candidate
def advance_until_future(
    start: datetime,
    now: datetime,
    slot_stats: SlotStatistics
) -> Tuple[datetime, int]:
    """Step forward by slot intervals (floored) until the time is >= now."""
    current = start
    steps = 0
    floor_minutes = FORWARD_STEP_FLOOR_MINUTES
    while current < now and steps < FORWARD_MAX_ITERATIONS:
        step_minutes = max(slot_stats.interval_for_hour(current.hour) * 60, floor_minutes)
        current += timedelta(minutes=step_minutes)
        steps += 1

    if current < now:
        logger.warning(f"Forward chaining stopped after {steps} steps, pinning to now")
        current = now
    return current, steps


def _median_interval(profile: Profile, feeds: Sequence[FeedEvent], now: datetime) -> float:
    samples = []
    for prev, curr in zip(feeds, feeds[1:]):
        gap_h = (curr.timestamp - prev.timestamp).total_seconds() / 3600.0
        if SLOT_INTERVAL_MIN_H < gap_h < SLOT_INTERVAL_MAX_H:
            samples.append((gap_h, recency_weight(curr.timestamp, now)))

    if len(samples) < SLOT_MIN_SAMPLES:
        return profile.stats.median_interval_h
    return weighted_median(samples)


def _post_nap_latency(
    feeds: Sequence[FeedEvent],
    sleeps: Sequence[SleepEvent],
    now: datetime
) -> Tuple[float, int]:
    """Weighted median minutes from wake-up to the next feed, and sample count."""
    samples = []
    window = timedelta(minutes=POST_NAP_LATENCY_WINDOW_MINUTES)
    for sleep in sleeps:
        if not sleep.is_complete or sleep.end > now:
            continue
        next_feed = next(
            (f for f in feeds if sleep.end < f.timestamp <= sleep.end + window),
            None
        )
        if next_feed:
            latency = (next_feed.timestamp - sleep.end).total_seconds() / 60.0
            samples.append((latency, recency_weight(sleep.end, now)))

    if len(samples) < SLOT_MIN_SAMPLES:
        return float(POST_NAP_DEFAULT_LATENCY_MINUTES), len(samples)
    return weighted_median(samples), len(samples)


def _post_nap_candidate(
    feeds: Sequence[FeedEvent],
    sleeps: Sequence[SleepEvent],
    now: datetime,
    slot_stats: SlotStatistics
) -> Optional[Tuple[datetime, SleepEvent, float]]:
    lookback = now - timedelta(hours=POST_NAP_REBASE_LOOKBACK_HOURS)
    recent = [s for s in sleeps if s.is_complete and lookback <= s.end <= now]
    if not recent:
        return None

    nap = max(recent, key=lambda s: s.end)
    if any(f.timestamp > nap.end for f in feeds):
        return None

    latency, _ = _post_nap_latency(feeds, sleeps, now)
    candidate = nap.end + timedelta(minutes=latency)
    candidate, _ = advance_until_future(candidate, now, slot_stats)
    return candidate, nap, latency


def _spread(predicted: datetime, interval_h: float, per_hour: int) -> TimingPrediction:
    confidence_minutes = round(interval_h * per_hour)
    return TimingPrediction(
        predicted_time=predicted,
        confidence_minutes=confidence_minutes,
        p10_time=predicted - timedelta(minutes=confidence_minutes),
        p90_time=predicted + timedelta(minutes=confidence_minutes),
    )


def _volume_bounds(slot_mean: float) -> Tuple[int, int]:
    low = math.ceil(slot_mean * VOLUME_CLAMP_LOW)
    high = max(low, math.floor(slot_mean * VOLUME_CLAMP_HIGH))
    return low, high


def _volume_shape(predicted_ml: int, std_ml: float) -> VolumePrediction:
    return VolumePrediction(
        predicted_ml=predicted_ml,
        confidence_ml=round(std_ml * VOLUME_CONFIDENCE_STD_FRACTION),
        p10_ml=max(VOLUME_P10_FLOOR_ML, predicted_ml - round(std_ml)),
        p90_ml=predicted_ml + round(std_ml),
    )


def _predict_volume(
    profile: Profile,
    slot_id: SlotId,
    last_feed: FeedEvent,
    patterns: List[DetectedPattern],
    slot_stats: SlotStatistics,
    explanations: List[Explanation]
) -> Tuple[VolumePrediction, float]:
    slot_mean = slot_stats.mean_ml(slot_id)
    predicted_ml = slot_mean
    explanations.append(Explanation(
        rule_id="VOLUME_BASE",
        text=f"Moyenne du créneau {SLOT_LABELS[slot_id]} : {round(slot_mean)} ml",
        impact="base",
    ))

    for pattern in patterns:
        if pattern.volume_modifier and pattern.volume_modifier != 1:
            predicted_ml *= pattern.volume_modifier
            explanations.append(Explanation(
                rule_id=pattern.id,
                text=pattern.description,
                impact=format_impact(pattern.volume_modifier, "volume"),
                factor=pattern.volume_modifier,
            ))

    adjustment_key = VOLUME_ADJUSTMENT_KEYS.get(slot_id)
    factor = profile.volume_adjustments.get(adjustment_key) if adjustment_key else None
    if factor and factor != 1:
        predicted_ml *= factor
        explanations.append(Explanation(
            rule_id="VOLUME_PROFILE",
            text=f"Profil de {profile.name} : ajustement du créneau {SLOT_LABELS[slot_id]}",
            impact=format_impact(factor, "volume"),
            factor=factor,
        ))

    if last_feed.has_volume:
        last_mean = slot_stats.mean_ml_for_hour(last_feed.timestamp.hour)
        ratio = last_feed.volume_ml / last_mean if last_mean > 0 else 1.0
        if ratio < VOLUME_SMALL_PREV_RATIO:
            predicted_ml *= VOLUME_SMALL_PREV_NUDGE
            explanations.append(Explanation(
                rule_id="VOLUME_COMPENSATION",
                text="Dernier repas plus petit que la moyenne",
                impact=format_impact(VOLUME_SMALL_PREV_NUDGE, "volume"),
                factor=VOLUME_SMALL_PREV_NUDGE,
            ))
        elif ratio > VOLUME_LARGE_PREV_RATIO:
            predicted_ml *= VOLUME_LARGE_PREV_NUDGE
            explanations.append(Explanation(
                rule_id="VOLUME_LARGE_PREV",
                text="Dernier repas plus gros que la moyenne",
                impact=format_impact(VOLUME_LARGE_PREV_NUDGE, "volume"),
                factor=VOLUME_LARGE_PREV_NUDGE,
            ))

    low, high = _volume_bounds(slot_mean)
    rounded = round(predicted_ml)
    clamped = min(max(rounded, low), high)
    if clamped != rounded:
        explanations.append(Explanation(
            rule_id="VOLUME_CLAMP",
            text=f"Volume borné entre {low} et {high} ml",
            impact="borne",
        ))

    std_ml = get_slot(profile, slot_id).std_ml
    return _volume_shape(clamped, std_ml), slot_mean


# Used by: predict_next_feed (empty or stale history)
def _predict_from_profile(
    profile: Profile,
    slot_stats: SlotStatistics,
    now: datetime,
    stale_hours: Optional[float] = None,
    stale_cutoff: Optional[float] = None
) -> Prediction:
    current_slot = slot_for_hour(profile, now.hour)
    slot_start = now.replace(hour=current_slot.hours[0], minute=0, second=0, microsecond=0)
    if slot_start > now:
        slot_start -= timedelta(days=1)

    predicted, _ = advance_until_future(slot_start, now, slot_stats)

    explanations = [Explanation(
        rule_id="PROFILE_DEFAULT",
        text=f"Basé sur le profil historique de {profile.name}",
        impact="estimation",
    )]
    if stale_hours is not None:
        explanations.append(Explanation(
            rule_id="STALE_TRACKING",
            text=(
                f"Dernier repas saisi il y a {stale_hours:.1f}h "
                f"(au-delà de {stale_cutoff:.1f}h) — projection sur le profil"
            ),
            impact="estimation",
        ))

    slot_id = slot_id_for_hour(predicted.hour)
    slot_mean = slot_stats.mean_ml(slot_id)
    low, high = _volume_bounds(slot_mean)
    predicted_ml = min(max(round(slot_mean), low), high)

    return Prediction(
        subject=profile.key,
        timing=_spread(
            predicted,
            slot_stats.interval_h(slot_id),
            PROFILE_TIMING_SPREAD_MINUTES_PER_HOUR
        ),
        volume=_volume_shape(predicted_ml, get_slot(profile, slot_id).std_ml),
        explanations=explanations,
        confidence="low",
        slot=slot_id,
        generated_at=now,
        profile_fallback=True,
        slot_mean_ml=slot_mean,
    )


# Used by: forecast.py, api/forecast.py
def predict_next_feed(
    profile: Profile,
    feeds: Sequence[FeedEvent],
    sleeps: Sequence[SleepEvent],
    now: datetime,
    sibling_feeds: Sequence[FeedEvent] = (),
    sibling_name: Optional[str] = None,
    window_days: Optional[int] = None,
    stale_after_hours: Optional[float] = None
) -> Prediction:
    """Next feed time and volume for one subject.

    Empty or stale history (last feed older than the staleness cutoff,
    the profile's p90 interval by default) yields a pure profile
    projection flagged with ``profile_fallback``. Otherwise the data-driven
    slot interval is modulated by active patterns and profile factors,
    chained forward past ``now`` and possibly rebased on the latest nap.
    """
    feeds = sorted(
        filter_recent_feeds((f for f in feeds if f.timestamp <= now), now, window_days),
        key=lambda f: f.timestamp
    )
    sleeps = sorted(
        filter_recent_sleeps((s for s in sleeps if s.start <= now), now, window_days),
        key=lambda s: s.start
    )
    sibling_feeds = sorted(
        filter_recent_feeds((f for f in sibling_feeds if f.timestamp <= now), now, window_days),
        key=lambda f: f.timestamp
    )
    slot_stats = SlotStatistics(profile, feeds, now)

    if not feeds:
        logger.info(f"{profile.key}: no feed history, using profile projection")
        return _predict_from_profile(profile, slot_stats, now)

    last_feed = feeds[-1]
    hours_since = (now - last_feed.timestamp).total_seconds() / 3600.0
    stale_cutoff = stale_after_hours or settings.STALE_FEED_HOURS or profile.stats.p90_h
    if hours_since > stale_cutoff:
        logger.info(
            f"{profile.key}: last feed {hours_since:.1f}h ago exceeds {stale_cutoff:.1f}h, "
            f"treating as a tracking lapse"
        )
        return _predict_from_profile(profile, slot_stats, now, hours_since, stale_cutoff)

    explanations: List[Explanation] = []
    patterns = detect_patterns(
        profile, feeds, sleeps, sibling_feeds, now,
        sibling_name=sibling_name, slot_stats=slot_stats
    )

    # --- TIMING ---
    median_h = _median_interval(profile, feeds, now)
    target_hour = (last_feed.timestamp.hour + round(median_h)) % 24
    target_slot = slot_id_for_hour(target_hour)
    interval_h = slot_stats.interval_h(target_slot)
    explanations.append(Explanation(
        rule_id="TIMING_BASE",
        text=f"Intervalle médian : {median_h:.1f}h",
        impact="base",
    ))
    explanations.append(Explanation(
        rule_id="TIMING_SLOT",
        text=f"Intervalle habituel après un repas du créneau {SLOT_LABELS[target_slot]} : {interval_h:.1f}h",
        impact="base",
    ))

    for pattern in patterns:
        if pattern.timing_modifier and pattern.timing_modifier != 1:
            interval_h *= pattern.timing_modifier
            explanations.append(Explanation(
                rule_id=pattern.id,
                text=pattern.description,
                impact=format_impact(pattern.timing_modifier, "intervalle"),
                factor=pattern.timing_modifier,
            ))

    adjustments = profile.interval_adjustments
    base_multiplier = adjustments.get("base_multiplier")
    if base_multiplier and base_multiplier != 1:
        interval_h *= base_multiplier
        explanations.append(Explanation(
            rule_id="TIMING_PROFILE",
            text=f"Rythme propre à {profile.name}",
            impact=format_impact(base_multiplier, "intervalle"),
            factor=base_multiplier,
        ))
    if target_slot == "evening" and adjustments.get("evening_reduction"):
        factor = adjustments["evening_reduction"]
        interval_h *= factor
        explanations.append(Explanation(
            rule_id="TIMING_EVENING",
            text="Créneau soir — intervalles plus courts",
            impact=format_impact(factor, "intervalle"),
            factor=factor,
        ))
    if target_slot == "midday" and adjustments.get("midday_extension"):
        factor = adjustments["midday_extension"]
        interval_h *= factor
        explanations.append(Explanation(
            rule_id="TIMING_MIDDAY",
            text="Créneau mi-journée — intervalles un peu plus longs",
            impact=format_impact(factor, "intervalle"),
            factor=factor,
        ))

    predicted = last_feed.timestamp + timedelta(minutes=round(interval_h * 60))
    predicted, steps = advance_until_future(predicted, now, slot_stats)
    if steps:
        explanations.append(Explanation(
            rule_id="TIMING_CATCH_UP",
            text="Heure prévue déjà passée — projection sur les créneaux suivants",
            impact=f"+{steps} pas",
        ))

    rebase = _post_nap_candidate(feeds, sleeps, now, slot_stats)
    if rebase is not None:
        candidate, nap, latency = rebase
        if candidate < predicted:
            predicted = candidate
            explanations.append(Explanation(
                rule_id="POST_NAP_REBASE",
                text=(
                    f"Réveil à {nap.end.strftime('%H:%M')} sans repas depuis — "
                    f"repas habituellement {round(latency)} min après le réveil"
                ),
                impact="recalage",
            ))

    # --- VOLUME ---
    resolved_slot = slot_id_for_hour(predicted.hour)
    volume, slot_mean = _predict_volume(
        profile, resolved_slot, last_feed, patterns, slot_stats, explanations
    )

    prediction = Prediction(
        subject=profile.key,
        timing=_spread(predicted, interval_h, TIMING_SPREAD_MINUTES_PER_HOUR),
        volume=volume,
        explanations=explanations,
        confidence=confidence_tier(feeds, now),
        slot=resolved_slot,
        generated_at=now,
        profile_fallback=False,
        slot_mean_ml=slot_mean,
    )
    logger.info(
        f"{profile.key}: next feed {predicted.strftime('%H:%M')} "
        f"~{volume.predicted_ml} ml ({prediction.confidence})"
    )
    return prediction
