"""
Daily LLM call budget (in-memory).

An analysis request costs at most one classifier call, and only when it has
titles the cache has not seen. The budget therefore counts requests that
needed the model, per cache owner and for the whole process, so a client
re-submitting calendars full of fresh titles cannot run up Gemini costs.

Counts live in a TTLCache with a 24 hour TTL; a process restart starts from
zero.
"""

from __future__ import annotations

from typing import NamedTuple

from cachetools import TTLCache

from calvibes.config import LLM_GLOBAL_DAILY_LIMIT, LLM_USER_DAILY_LIMIT
from calvibes.observability.logging import get_logger
from calvibes.observability.telemetry import counter

logger = get_logger(__name__)

_WINDOW_SECONDS = 24 * 60 * 60
_ALL_USERS = "*"

_user_calls: TTLCache[str, int] = TTLCache(maxsize=10_000, ttl=_WINDOW_SECONDS)
_process_calls: TTLCache[str, int] = TTLCache(maxsize=1, ttl=_WINDOW_SECONDS)


class BudgetStatus(NamedTuple):
    user_calls_today: int
    user_limit: int
    global_calls_today: int
    global_limit: int
    is_allowed: bool
    reason: str | None


def check_budget(
    user_id: str,
    user_limit: int = LLM_USER_DAILY_LIMIT,
    global_limit: int = LLM_GLOBAL_DAILY_LIMIT,
) -> BudgetStatus:
    """Whether ``user_id`` may make another classifier call right now."""
    used = _user_calls.get(user_id, 0)
    used_globally = _process_calls.get(_ALL_USERS, 0)

    if used >= user_limit:
        reason = f"User daily limit exceeded ({used}/{user_limit})"
    elif used_globally >= global_limit:
        reason = f"Global daily limit exceeded ({used_globally}/{global_limit})"
    else:
        reason = None

    return BudgetStatus(used, user_limit, used_globally, global_limit, reason is None, reason)


def record_llm_call(user_id: str, call_type: str = "classifier") -> None:
    _user_calls[user_id] = _user_calls.get(user_id, 0) + 1
    _process_calls[_ALL_USERS] = _process_calls.get(_ALL_USERS, 0) + 1
    counter(f"llm.budget.call.{call_type}")
    logger.debug("LLM call recorded for %s (%s)", user_id, call_type)


def reset_budgets() -> None:
    _user_calls.clear()
    _process_calls.clear()
