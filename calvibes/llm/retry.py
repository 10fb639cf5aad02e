"""Retrying Gemini call shared by every LLM consumer.

Transient Google API failures are translated into builtin exception types
(TimeoutError, ConnectionError, OSError) and retried by tenacity with
exponential backoff. Anything else propagates on the first attempt; the
meta-category classifier treats that as "this model variant failed" and
moves on to the next one.
"""

from __future__ import annotations

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from calvibes.config import LLM_MAX_RETRIES, LLM_TIMEOUT_SECONDS
from calvibes.infrastructure.settings import GEMINI_MAX_TOKENS, GEMINI_MODEL, GEMINI_TEMPERATURE
from calvibes.llm.gemini import get_backend, get_gemini_model
from calvibes.observability.logging import get_logger
from calvibes.observability.telemetry import counter

logger = get_logger(__name__)

RETRYABLE_ERRORS = (TimeoutError, ConnectionError, OSError)


def _transient_errors() -> list[tuple[type[Exception], str, type[Exception]]]:
    """(google exception, counter suffix, builtin replacement) in match order."""
    from google.api_core import exceptions as gexc

    return [
        (gexc.DeadlineExceeded, "timeout", TimeoutError),
        (gexc.ServiceUnavailable, "service_unavailable", ConnectionError),
        (gexc.InternalServerError, "internal_error", ConnectionError),
        (gexc.ResourceExhausted, "rate_limited", OSError),
    ]


def _generation_config(json_output: bool) -> dict[str, object]:
    config: dict[str, object] = {
        "temperature": GEMINI_TEMPERATURE,
        "max_output_tokens": GEMINI_MAX_TOKENS,
    }
    if json_output:
        config["response_mime_type"] = "application/json"
    return config


def _request_options() -> dict[str, object] | None:
    """Per-request deadline; only the google-generativeai client accepts one."""
    if get_backend() == "genai":
        return {"timeout": LLM_TIMEOUT_SECONDS}
    return None


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(RETRYABLE_ERRORS),
    reraise=True,
)
def call_llm(
    prompt: str,
    model_name: str = GEMINI_MODEL,
    counter_prefix: str = "llm",
    json_output: bool = True,
) -> str:
    """Send ``prompt`` to ``model_name`` and return the response text.

    Args:
        prompt: Full prompt text.
        model_name: Gemini model to call.
        counter_prefix: Telemetry counter prefix (e.g., "classifier").
        json_output: Ask for an application/json response.

    Raises:
        TimeoutError: Deadline exceeded (retried).
        ConnectionError: Service unavailable or internal error (retried).
        OSError: Rate limited (retried).
        Exception: Any other SDK error (not retried).
    """
    model = get_gemini_model(model_name)

    try:
        kwargs: dict[str, object] = {"generation_config": _generation_config(json_output)}
        request_options = _request_options()
        if request_options is not None:
            kwargs["request_options"] = request_options
        response = model.generate_content(prompt, **kwargs)
        return response.text
    except Exception as e:
        for google_error, suffix, builtin in _transient_errors():
            if isinstance(e, google_error):
                counter(f"{counter_prefix}.{suffix}")
                logger.warning("Gemini %s on %s, will retry: %s", suffix, model_name, e)
                raise builtin(f"Gemini {suffix}: {e}") from e

        logger.error("Gemini call failed (model=%s): %s", model_name, e)
        raise
