"""Pydantic request/response models for the forecast endpoints."""

import pytz
from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import List, Optional, Literal, Tuple

from ..core.settings import settings


# Used by: SleepEventIn, forecast.py. The engine works on naive household wall-clock time
def to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    local_tz = pytz.timezone(settings.TIMEZONE)
    return value.astimezone(local_tz).replace(tzinfo=None)


# Event payloads

class FeedEventIn(BaseModel):
    id: str
    subject: str
    timestamp: datetime
    type: Literal["bottle", "nursing"] = "bottle"
    volume_ml: float = 0.0
    duration_min: Optional[float] = None
    notes: Optional[str] = None

    @field_validator('volume_ml')
    @classmethod
    def volume_not_negative(cls, v):
        if v < 0:
            raise ValueError('volume_ml must be >= 0')
        return v


class SleepEventIn(BaseModel):
    id: str
    subject: str
    start: datetime
    end: Optional[datetime] = None
    duration_min: Optional[float] = None  # derived from start/end when omitted

    @field_validator('end')
    @classmethod
    def end_after_start(cls, v, info):
        if v is not None and 'start' in info.data and to_local_naive(v) < to_local_naive(info.data['start']):
            raise ValueError('end must be after start')
        return v


class ForecastRequest(BaseModel):
    feeds: List[FeedEventIn] = []
    sleeps: List[SleepEventIn] = []
    now: Optional[datetime] = None
    dismissed_alerts: List[str] = []


# Prediction models

class ExplanationOut(BaseModel):
    rule_id: str
    text: str
    impact: str
    factor: Optional[float] = None


class TimingOut(BaseModel):
    predicted_time: datetime
    confidence_minutes: int
    p10_time: datetime
    p90_time: datetime


class VolumeOut(BaseModel):
    predicted_ml: int
    confidence_ml: int
    p10_ml: int
    p90_ml: int


class PredictionResponse(BaseModel):
    subject: str
    timing: TimingOut
    volume: VolumeOut
    explanations: List[ExplanationOut]
    confidence: Literal["high", "medium", "low"]
    slot: str
    generated_at: datetime
    profile_fallback: bool = False
    slot_mean_ml: float = 0.0


class PatternOut(BaseModel):
    id: str
    label: str
    description: str
    subject: str
    detected_at: datetime
    timing_modifier: Optional[float] = None
    volume_modifier: Optional[float] = None


# Sleep models

class SleepPredictionOut(BaseModel):
    predicted_time: datetime
    confidence_minutes: int
    estimated_duration_min: int
    based_on: str


class SleepAnalysisResponse(BaseModel):
    subject: str
    total_sleep_today_min: float
    naps_today: int
    next_nap: Optional[SleepPredictionOut] = None
    bedtime: Optional[SleepPredictionOut] = None
    median_inter_nap_min: Optional[float] = None
    avg_nap_duration_min: int
    median_feed_to_nap_min: Optional[float] = None
    sleeping_since: Optional[datetime] = None


class InsightOut(BaseModel):
    id: str
    subject: str
    label: str
    observation: str
    data_points: int
    confidence: Literal["forte", "moderee", "faible"]
    stat: Optional[str] = None


# Twins & alerts

class SyncStatusResponse(BaseModel):
    state: Literal["synchronized", "slightly_offset", "desynchronized"]
    gap_minutes: float
    sync_rate: float
    common_window_start: Optional[datetime] = None
    common_window_end: Optional[datetime] = None
    suggestion: Optional[str] = None


class AlertOut(BaseModel):
    id: str
    type: str
    severity: str
    message: str
    subject: Optional[str] = None
    action_suggested: Optional[str] = None
    created_at: Optional[datetime] = None


class SubjectForecastResponse(BaseModel):
    subject: str
    name: str
    prediction: PredictionResponse
    sleep: SleepAnalysisResponse
    patterns: List[PatternOut]
    insights: List[InsightOut]
    accuracy: Optional[float] = None


class ForecastResponse(BaseModel):
    generated_at: datetime
    subjects: List[SubjectForecastResponse]
    sync: Optional[SyncStatusResponse] = None
    alerts: List[AlertOut]


# Profiles

class SlotOut(BaseModel):
    id: str
    hours: List[int]
    mean_ml: float
    std_ml: float
    typical_interval_after_h: float
    peak: bool = False


class ProfileOut(BaseModel):
    key: str
    name: str
    birth_date: str
    median_interval_h: float
    p90_interval_h: float
    typical_range_ml: Tuple[float, float]
    slots: List[SlotOut]


class ProfilesResponse(BaseModel):
    profiles: List[ProfileOut]
