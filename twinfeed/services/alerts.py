"""Derives parent-facing alerts from the current feed history and twins sync."""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from enum import Enum
from typing import AbstractSet, Any, Dict, List, Mapping, Optional, Sequence

from twinfeed.core.constants import (
    ALERT_VERY_SMALL_RATIO, ALERT_SMALL_RATIO, ALERT_APPETITE_DROP_RATIO,
    GROWTH_RECENT_HOURS, GROWTH_BASELINE_DAYS,
    GROWTH_MIN_RECENT_SAMPLES, GROWTH_MIN_BASELINE_SAMPLES, GROWTH_RATIO,
    SYNC_DESYNC_ALERT_MINUTES,
)
from twinfeed.core.models import FeedEvent, Profile
from twinfeed.services.slot_model import slot_for_hour
from twinfeed.services.twins_sync import SyncStatus
from twinfeed.utils.recency import plain_average

logger = logging.getLogger(__name__)


class AlertType(str, Enum):
    VERY_SMALL_FEED = "VERY_SMALL_FEED"
    SMALL_FEED = "SMALL_FEED"
    LONG_INTERVAL = "LONG_INTERVAL"
    GROWTH_SPURT = "GROWTH_SPURT"
    APPETITE_DROP = "APPETITE_DROP"
    TWINS_DESYNC = "TWINS_DESYNC"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"


@dataclass
class Alert:
    id: str
    type: str
    severity: str
    message: str
    subject: Optional[str] = None
    action_suggested: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if data["created_at"]:
            data["created_at"] = data["created_at"].isoformat()
        return data


def _feed_size_alert(profile: Profile, last_feed: FeedEvent, now: datetime) -> Optional[Alert]:
    if not last_feed.has_volume:
        return None

    slot = slot_for_hour(profile, last_feed.timestamp.hour)
    ratio = last_feed.volume_ml / slot.mean_ml
    volume = round(last_feed.volume_ml)
    typical = round(slot.mean_ml)

    if ratio < ALERT_VERY_SMALL_RATIO:
        return Alert(
            id=f"very-small-{profile.key}-{last_feed.id}",
            type=AlertType.VERY_SMALL_FEED.value,
            severity=AlertSeverity.WARNING.value,
            subject=profile.key,
            message=(
                f"{profile.name} n'a pris que {volume} ml (moyenne : {typical} ml). "
                f"Surveillez le prochain repas."
            ),
            action_suggested="Proposer un complément dans 1-2h si elle réclame.",
            created_at=now,
        )
    if ratio < ALERT_SMALL_RATIO:
        return Alert(
            id=f"small-{profile.key}-{last_feed.id}",
            type=AlertType.SMALL_FEED.value,
            severity=AlertSeverity.INFO.value,
            subject=profile.key,
            message=f"{profile.name} a mangé un peu moins que d'habitude ({volume} ml contre ~{typical} ml).",
            created_at=now,
        )
    return None


def _long_interval_alert(profile: Profile, last_feed: FeedEvent, now: datetime) -> Optional[Alert]:
    hours_since = (now - last_feed.timestamp).total_seconds() / 3600.0
    if hours_since <= profile.stats.p90_h:
        return None
    return Alert(
        id=f"long-interval-{profile.key}",
        type=AlertType.LONG_INTERVAL.value,
        severity=AlertSeverity.WARNING.value,
        subject=profile.key,
        message=(
            f"{profile.name} n'a pas mangé depuis {hours_since:.1f}h "
            f"(habituel : {profile.stats.median_interval_h}h)."
        ),
        action_suggested="Proposer un repas si elle est éveillée.",
        created_at=now,
    )


def _appetite_alert(profile: Profile, feeds: Sequence[FeedEvent], now: datetime) -> Optional[Alert]:
    bottles = [f for f in feeds if f.has_volume and f.timestamp <= now]
    recent_cutoff = now - timedelta(hours=GROWTH_RECENT_HOURS)
    baseline_cutoff = now - timedelta(days=GROWTH_BASELINE_DAYS)
    recent = [f.volume_ml for f in bottles if f.timestamp >= recent_cutoff]
    baseline = [f.volume_ml for f in bottles if f.timestamp >= baseline_cutoff]

    if len(recent) < GROWTH_MIN_RECENT_SAMPLES or len(baseline) < GROWTH_MIN_BASELINE_SAMPLES:
        return None

    avg_recent = plain_average(recent)
    avg_baseline = plain_average(baseline)

    if avg_recent > avg_baseline * GROWTH_RATIO:
        return Alert(
            id=f"growth-{profile.key}",
            type=AlertType.GROWTH_SPURT.value,
            severity=AlertSeverity.INFO.value,
            subject=profile.key,
            message=(
                f"{profile.name} mange ~{round(avg_recent)} ml en moyenne "
                f"(contre {round(avg_baseline)} ml habituels). Possible pic de croissance."
            ),
            created_at=now,
        )
    if avg_recent < avg_baseline * ALERT_APPETITE_DROP_RATIO:
        return Alert(
            id=f"appetite-drop-{profile.key}",
            type=AlertType.APPETITE_DROP.value,
            severity=AlertSeverity.WARNING.value,
            subject=profile.key,
            message=(
                f"{profile.name} mange moins que d'habitude "
                f"(~{round(avg_recent)} ml contre {round(avg_baseline)} ml). À surveiller si ça persiste."
            ),
            created_at=now,
        )
    return None


def _desync_alert(sync_status: Optional[SyncStatus], now: datetime) -> Optional[Alert]:
    if sync_status is None or sync_status.gap_minutes <= SYNC_DESYNC_ALERT_MINUTES:
        return None
    message = f"Les jumelles sont décalées de {round(sync_status.gap_minutes)} minutes."
    if sync_status.suggestion:
        message += f" {sync_status.suggestion}"
    return Alert(
        id="twins-desync",
        type=AlertType.TWINS_DESYNC.value,
        severity=AlertSeverity.INFO.value,
        message=message,
        created_at=now,
    )


# Used by: forecast.py
def generate_alerts(
    profiles: Mapping[str, Profile],
    feeds_by_subject: Mapping[str, Sequence[FeedEvent]],
    sync_status: Optional[SyncStatus],
    now: datetime,
    dismissed: AbstractSet[str] = frozenset()
) -> List[Alert]:
    """Active alerts, minus those whose id the caller already dismissed."""
    alerts: List[Optional[Alert]] = []

    for key, profile in profiles.items():
        feeds = sorted(
            (f for f in feeds_by_subject.get(key, ()) if f.timestamp <= now),
            key=lambda f: f.timestamp
        )
        if not feeds:
            continue

        last_feed = feeds[-1]
        alerts.append(_feed_size_alert(profile, last_feed, now))
        alerts.append(_long_interval_alert(profile, last_feed, now))
        alerts.append(_appetite_alert(profile, feeds, now))

    alerts.append(_desync_alert(sync_status, now))

    active = [a for a in alerts if a is not None and a.id not in dismissed]
    skipped = sum(1 for a in alerts if a is not None and a.id in dismissed)
    if skipped:
        logger.debug(f"{skipped} dismissed alert(s) filtered out")
    logger.info(f"{len(active)} active alert(s)")
    return active
