"""
Forecast API — next feed, sleep, insights and twins sync from an event snapshot.

Routes (/forecast):
  GET  /profiles                 - Static per-subject profiles
  POST /                         - Full household forecast (both twins, sync, alerts)
  POST /{subject}/next-feed      - Next feed prediction for one subject
"""

import logging
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional, Tuple

import pytz
from fastapi import APIRouter, HTTPException

from ..core.models import FeedEvent, SleepEvent
from ..core.profiles import PROFILES
from ..core.settings import settings
from ..services.forecast import ForecastSnapshot, SubjectForecast, build_forecast, partition_feeds, partition_sleeps, sibling_of
from ..services.predictor import predict_next_feed
from .models import (
    AlertOut,
    ForecastRequest,
    ForecastResponse,
    FeedEventIn,
    InsightOut,
    PatternOut,
    PredictionResponse,
    ProfileOut,
    ProfilesResponse,
    SleepAnalysisResponse,
    SleepEventIn,
    SlotOut,
    SubjectForecastResponse,
    SyncStatusResponse,
    to_local_naive,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forecast", tags=["forecast"])


def _resolve_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(pytz.timezone(settings.TIMEZONE)).replace(tzinfo=None)
    return to_local_naive(now)


def _to_feed(event: FeedEventIn) -> FeedEvent:
    return FeedEvent(
        id=event.id,
        subject=event.subject,
        timestamp=to_local_naive(event.timestamp),
        type=event.type,
        volume_ml=event.volume_ml,
        duration_min=event.duration_min,
        notes=event.notes,
    )


def _to_sleep(event: SleepEventIn) -> SleepEvent:
    start = to_local_naive(event.start)
    end = to_local_naive(event.end) if event.end else None
    duration = event.duration_min
    if duration is None:
        duration = (end - start).total_seconds() / 60.0 if end else 0.0
    return SleepEvent(id=event.id, subject=event.subject, start=start, end=end, duration_min=duration)


# Used by: create_forecast, next_feed (400 on events for an unknown subject)
def validate_subjects(request: ForecastRequest) -> None:
    for event in [*request.feeds, *request.sleeps]:
        if event.subject not in PROFILES:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown subject '{event.subject}' in event {event.id}"
            )


def _convert_events(request: ForecastRequest) -> Tuple[List[FeedEvent], List[SleepEvent]]:
    validate_subjects(request)
    return [_to_feed(f) for f in request.feeds], [_to_sleep(s) for s in request.sleeps]


def _subject_response(forecast: SubjectForecast) -> SubjectForecastResponse:
    return SubjectForecastResponse(
        subject=forecast.subject,
        name=forecast.name,
        prediction=PredictionResponse(**asdict(forecast.prediction)),
        sleep=SleepAnalysisResponse(**asdict(forecast.sleep)),
        patterns=[PatternOut(**asdict(p)) for p in forecast.patterns],
        insights=[InsightOut(**asdict(i)) for i in forecast.insights.insights],
        accuracy=forecast.accuracy,
    )


def _forecast_response(snapshot: ForecastSnapshot) -> ForecastResponse:
    return ForecastResponse(
        generated_at=snapshot.generated_at,
        subjects=[_subject_response(s) for s in snapshot.subjects.values()],
        sync=SyncStatusResponse(**asdict(snapshot.sync)) if snapshot.sync else None,
        alerts=[AlertOut(**alert.to_dict()) for alert in snapshot.alerts],
    )


@router.get("/profiles", response_model=ProfilesResponse)
def get_profiles():
    return ProfilesResponse(profiles=[
        ProfileOut(
            key=profile.key,
            name=profile.name,
            birth_date=profile.birth_date,
            median_interval_h=profile.stats.median_interval_h,
            p90_interval_h=profile.stats.p90_h,
            typical_range_ml=profile.stats.typical_range_ml,
            slots=[SlotOut(**asdict(slot)) for slot in profile.slots],
        )
        for profile in PROFILES.values()
    ])


@router.post("", response_model=ForecastResponse)
def create_forecast(request: ForecastRequest):
    """Forecast for both twins from the posted event snapshot."""
    feeds, sleeps = _convert_events(request)
    now = _resolve_now(request.now)
    logger.info(f"POST /forecast: {len(feeds)} feed(s), {len(sleeps)} sleep(s), now={now.isoformat()}")

    snapshot = build_forecast(feeds, sleeps, now, dismissed_alerts=frozenset(request.dismissed_alerts))
    return _forecast_response(snapshot)


@router.post("/{subject}/next-feed", response_model=PredictionResponse)
def next_feed(subject: str, request: ForecastRequest):
    profile = PROFILES.get(subject)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Subject '{subject}' not found")

    feeds, sleeps = _convert_events(request)
    now = _resolve_now(request.now)
    feeds_by_subject = partition_feeds(feeds)
    sleeps_by_subject = partition_sleeps(sleeps)

    sibling = sibling_of(subject, PROFILES)
    prediction = predict_next_feed(
        profile,
        feeds_by_subject[subject],
        sleeps_by_subject[subject],
        now,
        sibling_feeds=feeds_by_subject.get(sibling, []) if sibling else [],
        sibling_name=PROFILES[sibling].name if sibling else None,
    )
    return PredictionResponse(**asdict(prediction))
