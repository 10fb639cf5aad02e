"""
Meta-category classifier - batched Gemini classification of activity names.

Best effort by contract: the classifier returns whatever mapping it could get
and an empty dict when every model variant failed. Validating labels against
the four meta-categories is the caller's job (see CategoryResolver).

Cost: one LLM call per analysis request that has uncached categories.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Sequence
from typing import Protocol

from calvibes.infrastructure.settings import GEMINI_MODEL_VARIANTS
from calvibes.observability.logging import get_logger
from calvibes.observability.telemetry import counter, log_event

logger = get_logger(__name__)

_CODE_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_CODE_FENCE_CLOSE = re.compile(r"\s*```$")


def _use_llm() -> bool:
    """Check LLM feature flag at call time (not import time).

    Reads env var fresh to avoid stale values when dotenv loads after module import.
    """
    return os.getenv("CALVIBES_USE_LLM", "true").lower() == "true"


class MetaClassifier(Protocol):
    """Best-effort classify: display name -> free-text meta label."""

    def classify(self, display_names: Sequence[str]) -> dict[str, str]: ...


class GeminiMetaClassifier:
    """
    Classifies activity names into INVESTMENT / RECOVERY / MAINTENANCE / PASSIVE.

    Tries each configured model variant in order; the first variant that
    returns a parseable JSON object wins.
    """

    PROMPT_TEMPLATE = """You are a time-tracking assistant that sorts calendar activities by how they spend a person's energy.

Classify each of the following calendar event titles into exactly one of these 4 categories:
1. INVESTMENT: High-value work, coding, studying, research, reading, deep work, meetings, skill building.
2. RECOVERY: Sleep, gym, workout, meditation, rest, sports.
3. MAINTENANCE: Chores, commute, eating, logistics, errands, shower.
4. PASSIVE: Entertainment, games, social media, browsing, low-value leisure, TV.

Return ONLY a valid JSON object mapping each event title, exactly as given, to its category.

Titles to classify:
{titles}"""

    def __init__(self, model_variants: Sequence[str] | None = None):
        self.model_variants = tuple(model_variants or GEMINI_MODEL_VARIANTS)

    def _call_llm(self, prompt: str, model_name: str) -> str:
        from calvibes.llm.retry import call_llm

        return call_llm(prompt, model_name=model_name, counter_prefix="classifier")

    def classify(self, display_names: Sequence[str]) -> dict[str, str]:
        """
        Classify a batch of display names.

        Returns:
            Mapping of display name to the model's label (unvalidated);
            {} when the batch is empty, LLM is disabled or every variant failed

        Side Effects:
            - Calls Gemini API (one request per variant tried)
            - Increments telemetry counters
        """
        names = list(dict.fromkeys(display_names))
        if not names:
            return {}

        if not _use_llm():
            counter("classifier.llm_disabled")
            logger.warning(
                "LLM DISABLED: CALVIBES_USE_LLM=%s - %d categories fall back to default",
                os.getenv("CALVIBES_USE_LLM", "not_set"),
                len(names),
            )
            return {}

        prompt = self._build_prompt(names)

        for model_name in self.model_variants:
            try:
                logger.info("LLM CLASSIFIER: Calling %s for %d titles", model_name, len(names))
                response_text = self._call_llm(prompt, model_name)
                result = self._parse_response(response_text)

                counter("classifier.success")
                log_event(
                    "classifier.result",
                    model=model_name,
                    requested=len(names),
                    returned=len(result),
                )
                return result

            except Exception as e:
                counter("classifier.variant_error")
                logger.warning("LLM CLASSIFIER: %s failed: %s", model_name, e)

        counter("classifier.error")
        logger.error(
            "LLM CLASSIFIER ERROR: all %d model variants failed", len(self.model_variants)
        )
        log_event("classifier.error", variants=len(self.model_variants), requested=len(names))
        return {}

    def _build_prompt(self, names: list[str]) -> str:
        return self.PROMPT_TEMPLATE.format(titles=json.dumps(names, ensure_ascii=False))

    def _parse_response(self, response_text: str) -> dict[str, str]:
        """
        Parse the model's JSON object.

        Raises:
            ValueError: If the response is not a JSON object
        """
        json_text = (response_text or "").strip()
        if json_text.startswith("```"):
            counter("classifier.code_fence_fallback")
            json_text = _CODE_FENCE_OPEN.sub("", json_text)
            json_text = _CODE_FENCE_CLOSE.sub("", json_text)

        try:
            data = json.loads(json_text)
        except json.JSONDecodeError as e:
            counter("classifier.parse_error")
            raise ValueError(f"classifier response is not JSON: {e}") from e

        if not isinstance(data, dict):
            counter("classifier.parse_error")
            raise ValueError(f"classifier response is {type(data).__name__}, expected object")

        return {
            str(name): label
            for name, label in data.items()
            if isinstance(label, str)
        }
