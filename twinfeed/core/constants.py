"""Calibrated thresholds, multipliers and app-level tuning constants."""

# ── DATA WINDOW & RECENCY ────────────────────────────────────────────────────
# No clinical source, hand-calibrated on the household's own logs.
# Only the last DATA_WINDOW_DAYS of events feed any statistic; inside the
# window recent samples weigh more (growth spurts, routine changes).
DATA_WINDOW_DAYS = 60
RECENCY_RECENT_DAYS = 7
RECENCY_MEDIUM_DAYS = 21
RECENCY_WEIGHT_RECENT = 3
RECENCY_WEIGHT_MEDIUM = 2
RECENCY_WEIGHT_OLD = 1


# ── SLOT MODEL ───────────────────────────────────────────────────────────────
# Conventional day partitioning, aligned with the profile slot tables.
SLOT_MORNING_START = 6
SLOT_MIDDAY_START = 10
SLOT_AFTERNOON_START = 14
SLOT_EVENING_START = 18
SLOT_NIGHT_START = 22

# Gaps outside this range are logging artefacts (double entries, missed feeds)
SLOT_INTERVAL_MIN_H = 0.5
SLOT_INTERVAL_MAX_H = 12.0
SLOT_MIN_SAMPLES = 3


# ── PATTERN DETECTION ────────────────────────────────────────────────────────
# No clinical source, app-level heuristics. Modifiers are multiplicative:
# 0.75 shortens the expected interval by 25%.
CLUSTER_WINDOW_MINUTES = 180
CLUSTER_MIN_FEEDS = 3
CLUSTER_TIMING_MODIFIER = 1.30

COMPENSATION_RATIO = 0.7
COMPENSATION_TIMING_MODIFIER = 0.75

EVENING_START_HOUR = 18
EVENING_END_HOUR = 22
EVENING_TIMING_MODIFIER = 0.85
EVENING_VOLUME_MODIFIER = 1.10

NIGHT_START_HOUR = 22
NIGHT_END_HOUR = 6
NIGHT_TIMING_MODIFIER = 1.20
NIGHT_VOLUME_MODIFIER = 0.85

POST_NAP_MIN_DURATION_MINUTES = 45
POST_NAP_RECENT_MINUTES = 30
POST_NAP_TIMING_MODIFIER = 0.85
POST_NAP_VOLUME_MODIFIER = 1.10

GROWTH_RECENT_HOURS = 48
GROWTH_BASELINE_DAYS = 14
GROWTH_MIN_RECENT_SAMPLES = 4
GROWTH_MIN_BASELINE_SAMPLES = 10
GROWTH_RATIO = 1.25
GROWTH_TIMING_MODIFIER = 0.80
GROWTH_VOLUME_MODIFIER = 1.15

DESYNC_GAP_MINUTES = 60


# ── FEED PREDICTION ──────────────────────────────────────────────────────────
# No clinical source, app-level prediction tuning factors.
FORWARD_STEP_FLOOR_MINUTES = 30
FORWARD_MAX_ITERATIONS = 200

POST_NAP_REBASE_LOOKBACK_HOURS = 8
POST_NAP_LATENCY_WINDOW_MINUTES = 120
POST_NAP_DEFAULT_LATENCY_MINUTES = 30

VOLUME_SMALL_PREV_RATIO = 0.7
VOLUME_LARGE_PREV_RATIO = 1.3
VOLUME_SMALL_PREV_NUDGE = 1.10
VOLUME_LARGE_PREV_NUDGE = 0.90
VOLUME_CLAMP_LOW = 0.5
VOLUME_CLAMP_HIGH = 1.5

CONFIDENCE_HIGH_WEIGHT = 100
CONFIDENCE_MEDIUM_WEIGHT = 40

# ± minutes per predicted hour of interval
TIMING_SPREAD_MINUTES_PER_HOUR = 20
PROFILE_TIMING_SPREAD_MINUTES_PER_HOUR = 30
VOLUME_CONFIDENCE_STD_FRACTION = 0.8
VOLUME_P10_FLOOR_ML = 30


# ── SLEEP ANALYSIS ───────────────────────────────────────────────────────────
# Wake windows for infants aged 4-6 months (minutes).
# No clinical source, in line with the usual 5-7 month wake-window ranges (2-4h).
WAKE_WINDOW_OPTIMAL_MIN = 90
WAKE_WINDOW_OPTIMAL_MAX = 150
WAKE_WINDOW_MAX_BEFORE_OVERTIRED = 180

NAP_DAY_START_HOUR = 6
NAP_DAY_END_HOUR = 21
NIGHT_SLEEP_MIN_START_HOUR = 19
NIGHT_SLEEP_MIN_DURATION_MINUTES = 120

INTER_NAP_MAX_MINUTES = 360
FEED_TO_NAP_MAX_MINUTES = 180
SLEEP_MIN_SAMPLES = 3
SLEEP_PREDICTION_CONFIDENCE_MINUTES = 30
NAP_FALLBACK_LEAD_MINUTES = 15

BEDTIME_DEFICIT_THRESHOLD_MINUTES = 30
BEDTIME_DEFICIT_FACTOR = 0.5
BEDTIME_MAX_PULL_MINUTES = 60

# Night segments separated by less than this belong to the same night (a waking)
SLEEP_BLOCK_GAP_THRESHOLD_MINUTES = 120
NIGHT_SEGMENT_END_HOUR = 6


# ── FEED-SLEEP INSIGHTS ──────────────────────────────────────────────────────
# No clinical source, minimum evidence before an observation is surfaced.
INSIGHT_MIN_DATA_POINTS = 5
INSIGHT_MIN_PER_GROUP = 3
INSIGHT_CONFIDENCE_STRONG = 25
INSIGHT_CONFIDENCE_MODERATE = 12

PRE_NAP_FEED_WINDOW_MINUTES = 120
POST_NAP_FEED_WINDOW_MINUTES = 90
LONG_NAP_MINUTES = 45
CLUSTER_EPISODE_GAP_MINUTES = 60
CLUSTER_SLEEP_WINDOW_MINUTES = 120
CLUSTER_MIN_EPISODES = 2
CLUSTER_SLEEP_NOISE_MINUTES = 3
WAKE_WINDOW_MIN_MINUTES = 30
MORNING_NAP_END_HOUR = 12
AFTERNOON_NAP_START_HOUR = 14


# ── ACCURACY ─────────────────────────────────────────────────────────────────
# The household's "day" starts at 05:00, after the last night feed.
ACCURACY_DAY_START_HOUR = 5
ACCURACY_INTERVAL_MIN_MINUTES = 60
ACCURACY_INTERVAL_MAX_MINUTES = 360
ACCURACY_INTERVAL_TOLERANCE_MINUTES = 45
ACCURACY_NAP_MIN_MINUTES = 10
ACCURACY_NAP_MAX_MINUTES = 180
ACCURACY_NAP_TOLERANCE_MINUTES = 20
ACCURACY_MIN_HISTORY = 5


# ── TWINS SYNC ───────────────────────────────────────────────────────────────
SYNC_SYNCHRONIZED_MINUTES = 20
SYNC_SLIGHTLY_OFFSET_MINUTES = 45
SYNC_DESYNC_ALERT_MINUTES = 60
SYNC_PAIR_TOLERANCE_MINUTES = 30
SYNC_RECENT_FEEDS = 20
SYNC_WINDOW_HALF_MINUTES = 15


# ── ALERTS ───────────────────────────────────────────────────────────────────
ALERT_VERY_SMALL_RATIO = 0.5
ALERT_SMALL_RATIO = 0.7
ALERT_APPETITE_DROP_RATIO = 0.75
