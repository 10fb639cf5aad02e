"""Centralized configuration for the Calendar Vibes engine.

Re-exports everything from calvibes.infrastructure.settings so existing imports
continue to work, then adds typed constants for database, LLM, budget and
analysis settings.  Environment variable overrides use safe defaults so the
engine runs without extra env configuration.
"""

from __future__ import annotations

import os

from calvibes.infrastructure.settings import *  # noqa: F401, F403 re-export

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("CALVIBES_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("CALVIBES_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("CALVIBES_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("CALVIBES_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("CALVIBES_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("CALVIBES_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("CALVIBES_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("CALVIBES_DB_RETRY_JITTER", "0.1"))

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(os.getenv("CALVIBES_LLM_TIMEOUT", "30"))
LLM_MAX_RETRIES: int = int(os.getenv("CALVIBES_LLM_MAX_RETRIES", "3"))

# --- LLM Budget ---
LLM_USER_DAILY_LIMIT: int = 50
LLM_GLOBAL_DAILY_LIMIT: int = 2000

# --- Analysis ---
SHORT_SESSION_MINUTES: float = 30.0
DEEP_WORK_MINUTES: float = 90.0
HIGH_STRESS_INVESTMENT_MINUTES: float = 6 * 60
HIGH_STRESS_RECOVERY_MINUTES: float = 6 * 60
RECOVERY_HOURS_PER_DAY: float = 8.0
