"""Configuration settings for the exposure engine."""

from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
OUTPUTS_DIR = PROJECT_ROOT / "outputs"

# Ray casting parameters (scene length units, normally meters)
RAY_EPSILON = 0.1  # Offset along the normal before casting
HIT_TOLERANCE = 0.2  # Hits closer than this are treated as self-intersection
RAY_LENGTH = 10000.0

# Solar sampling window (local clock hours on the reference date)
SUN_WINDOW_START_HOUR = 8
SUN_WINDOW_END_HOUR = 16
SUN_SAMPLE_COUNT = 5
SUN_WINDOW_HOURS = 8.0

# Daylight (sky-view) proxy: base + weight * horizontality
SKY_BASE = 0.2
SKY_HORIZONTAL_WEIGHT = 0.8

# Prevailing wind, compass bearing the wind blows FROM (0 = north, 90 = east)
PREVAILING_WIND_AZIMUTH_DEG = 45.0

# Substituted for NaN/Inf results and degenerate samples
NEUTRAL_VALUE = 0.5

# Fallback thresholds when regulations are active but give no number
DEFAULT_SUN_HOURS_MIN = 2.0
DEFAULT_SUN_HOURS_TARGET = 4.0
DEFAULT_DAYLIGHT_FACTOR_MIN = 0.02
DEFAULT_DAYLIGHT_FACTOR_TARGET = 0.04
TARGET_FACTOR = 1.5  # target = minimum * TARGET_FACTOR when not stated

# Keywords selecting the credits scanned for thresholds
CREDIT_KEYWORDS = ("daylight", "sun", "natural light")
CREDIT_CODE_MARKER = "EQ"

# Gradient ranges used when no certification is active
GRADIENT_RANGES = {
    "sun_hours": (0.0, SUN_WINDOW_HOURS),
    "daylight_factor": (0.0, 1.0),
    "wind_exposure": (0.0, 1.0),
}
GRADIENT_HUE_LOW = 2.0 / 3.0  # blue
GRADIENT_HUE_HIGH = 0.0  # red

# Compliance band colours
COLOR_BELOW_MINIMUM = "#ff0000"
COLOR_MEETS_MINIMUM = "#ffcc00"
COLOR_EXCEEDS_TARGET = "#00cc00"

# Orchestrator
DEBOUNCE_SECONDS = 0.15

# Ground grid
GROUND_MIN_SPACING = 2.0  # m
GROUND_TARGET_POINTS = 600
GROUND_EVALUATION_HEIGHT = 0.5  # m above ground
FOOTPRINT_BUFFER = 0.25  # m, avoids façade-adjacent artifacts

# Visualization settings
DPI = 300
SHOW_PROGRESS = True
