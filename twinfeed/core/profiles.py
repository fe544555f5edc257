"""Static per-subject profiles, default sleep profiles and curated sync windows."""

from typing import Dict, List, Tuple

from twinfeed.core.models import NapWindow, Profile, ProfileStats, SleepProfile, TimeSlot

# ── FEEDING PROFILES ─────────────────────────────────────────────────────────
# Calibrated from the first months of logs (bottle volumes in ml, intervals
# in hours). Slot tables are overridden by data-driven statistics as soon as
# the slot model has enough samples.
NIGHT_HOURS = (22, 23, 0, 1, 2, 3, 4, 5)

COLETTE_SLOTS = (
    TimeSlot("morning", (6, 7, 8, 9), mean_ml=129, std_ml=41, typical_interval_after_h=3.5),
    TimeSlot("midday", (10, 11, 12, 13), mean_ml=127, std_ml=36, typical_interval_after_h=3.0),
    TimeSlot("afternoon", (14, 15, 16, 17), mean_ml=135, std_ml=33, typical_interval_after_h=2.5),
    TimeSlot("evening", (18, 19, 20, 21), mean_ml=147, std_ml=31, typical_interval_after_h=3.0, peak=True),
    TimeSlot("night", NIGHT_HOURS, mean_ml=116, std_ml=43, typical_interval_after_h=4.0),
)

ISAURE_SLOTS = (
    TimeSlot("morning", (6, 7, 8, 9), mean_ml=134, std_ml=23, typical_interval_after_h=3.0),
    TimeSlot("midday", (10, 11, 12, 13), mean_ml=148, std_ml=32, typical_interval_after_h=3.0, peak=True),
    TimeSlot("afternoon", (14, 15, 16, 17), mean_ml=143, std_ml=27, typical_interval_after_h=2.5),
    TimeSlot("evening", (18, 19, 20, 21), mean_ml=140, std_ml=32, typical_interval_after_h=3.0),
    TimeSlot("night", NIGHT_HOURS, mean_ml=102, std_ml=39, typical_interval_after_h=4.5),
)

PROFILES: Dict[str, Profile] = {
    "colette": Profile(
        name="Colette",
        key="colette",
        birth_date="2025-08-12",
        stats=ProfileStats(
            mean_volume_ml=131,
            std_volume_ml=33,
            typical_range_ml=(100, 160),
            mean_interval_h=4.6,
            median_interval_h=4.1,
            typical_range_h=(2.5, 7.5),
            p10_h=2.4,
            p90_h=7.4,
        ),
        slots=COLETTE_SLOTS,
        volume_adjustments={"evening_boost": 1.14, "night_reduction": 0.89},
        interval_adjustments={"base_multiplier": 1.0, "evening_reduction": 0.85},
    ),
    "isaure": Profile(
        name="Isaure",
        key="isaure",
        birth_date="2025-08-12",
        stats=ProfileStats(
            mean_volume_ml=134,
            std_volume_ml=32,
            typical_range_ml=(100, 165),
            mean_interval_h=4.2,
            median_interval_h=3.4,
            typical_range_h=(2.2, 7.0),
            p10_h=2.2,
            p90_h=7.0,
        ),
        slots=ISAURE_SLOTS,
        volume_adjustments={"midday_boost": 1.10, "night_reduction": 0.72},
        interval_adjustments={"base_multiplier": 0.91, "midday_extension": 1.05},
    ),
}

# Used by: patterns.py (DESYNC), forecast.py
SIBLINGS: Dict[str, str] = {
    "colette": "isaure",
    "isaure": "colette",
}


# ── SLEEP PROFILES ───────────────────────────────────────────────────────────
# Defaults used when fewer than SLEEP_MIN_SAMPLES observations exist.
DEFAULT_SLEEP: Dict[str, SleepProfile] = {
    "colette": SleepProfile(
        night_duration_min=376,
        typical_bedtime_hour=21,
        typical_wake_hour=7,
        night_feeds=1,
        naps_per_day=3,
        nap_duration_min=36,
        best_nap_times=(NapWindow(9, 10), NapWindow(12, 13), NapWindow(16, 17)),
    ),
    "isaure": SleepProfile(
        night_duration_min=387,
        typical_bedtime_hour=21,
        typical_wake_hour=7,
        night_feeds=1,
        naps_per_day=3,
        nap_duration_min=37,
        best_nap_times=(NapWindow(9.5, 10.5), NapWindow(12, 13), NapWindow(16, 17)),
    ),
}


# ── BEST SYNC WINDOWS (start_h, end_h, label) ────────────────────────────────
# Moments of the day where feeding both twins together usually works.
BEST_SYNC_WINDOWS: List[Tuple[int, int, str]] = [
    (7, 8, "Réveil"),
    (10, 11, "Mi-matinée"),
    (13, 14, "Début après-midi"),
    (17, 18, "Fin après-midi"),
    (20, 21, "Avant coucher"),
]
