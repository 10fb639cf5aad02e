"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os

# Owner used when the caller does not name one (single-user mode)
DEFAULT_USER_ID = os.getenv("CALVIBES_DEFAULT_USER", "default")

# IANA zone used for time-of-day / weekday bucketing. Empty = each event's own offset.
ANALYSIS_TIMEZONE = os.getenv("CALVIBES_TIMEZONE", "")

# Google Cloud / Gemini
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_MODEL_VARIANTS = tuple(
    name.strip()
    for name in os.getenv(
        "GEMINI_MODEL_VARIANTS", f"{GEMINI_MODEL},gemini-2.0-flash-001,gemini-1.5-flash"
    ).split(",")
    if name.strip()
)
GEMINI_LOCATION = os.getenv("GEMINI_LOCATION", "us-central1")
GEMINI_MAX_TOKENS = int(os.getenv("GEMINI_MAX_TOKENS", "2048"))
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.2"))
