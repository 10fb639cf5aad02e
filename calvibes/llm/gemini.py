"""
Gemini model factory.

Model instances are cached per model name so the classifier can walk its list
of model variants without re-initializing the SDK on every request.

Supports two backends:
  1. Vertex AI SDK (production) - uses GOOGLE_CLOUD_PROJECT + service account
  2. google-generativeai (local dev) - uses GOOGLE_API_KEY
"""

from __future__ import annotations

import os
from functools import lru_cache

from calvibes.infrastructure.settings import (
    GEMINI_LOCATION,
    GEMINI_MODEL,
    GOOGLE_API_KEY,
    GOOGLE_CLOUD_PROJECT,
)
from calvibes.observability.logging import get_logger

logger = get_logger(__name__)

# "vertexai" or "genai" once a backend has been initialized
_backend: str | None = None


class GeminiInitializationError(RuntimeError):
    """No Gemini backend could produce a model."""


def _init_vertexai(model_name: str):
    import vertexai
    from vertexai.generative_models import GenerativeModel

    # .env may be loaded after settings was imported
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    location = os.getenv("GEMINI_LOCATION") or GEMINI_LOCATION

    if not project:
        raise GeminiInitializationError("GOOGLE_CLOUD_PROJECT not set")

    vertexai.init(project=project, location=location)
    model = GenerativeModel(model_name)

    logger.info(
        "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
        project,
        location,
        model_name,
    )
    return model


def _init_genai(model_name: str):
    api_key = os.getenv("GOOGLE_API_KEY") or GOOGLE_API_KEY
    if not api_key:
        raise GeminiInitializationError(
            "Neither GOOGLE_CLOUD_PROJECT nor GOOGLE_API_KEY available. "
            "Configure Vertex AI credentials or set GOOGLE_API_KEY."
        )

    import google.generativeai as genai

    genai.configure(api_key=api_key)
    model = genai.GenerativeModel(model_name)

    logger.info("Initialized Gemini model (google-generativeai): model=%s", model_name)
    return model


@lru_cache(maxsize=8)
def get_gemini_model(model_name: str = GEMINI_MODEL):
    """
    Get or create a shared Gemini model instance for ``model_name``.

    Tries the Vertex AI SDK first when a Google Cloud project is configured.
    Falls back to google-generativeai with GOOGLE_API_KEY for local development.

    Returns:
        GenerativeModel for the requested model name

    Raises:
        GeminiInitializationError: If no backend can be initialized
    """
    global _backend

    if os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT:
        try:
            model = _init_vertexai(model_name)
            _backend = "vertexai"
            return model
        except ImportError:
            logger.info("Vertex AI SDK not installed, trying google-generativeai fallback")
        except Exception as e:
            logger.warning("Vertex AI initialization failed, trying API key: %s", e)

    try:
        model = _init_genai(model_name)
        _backend = "genai"
        return model
    except GeminiInitializationError:
        raise
    except ImportError as e:
        raise GeminiInitializationError(
            "google-generativeai is not installed and Vertex AI is not configured"
        ) from e
    except Exception as e:
        logger.error("Failed to initialize Gemini model %s: %s", model_name, e)
        raise GeminiInitializationError(f"Gemini model {model_name} unavailable: {e}") from e


def get_backend() -> str | None:
    """Name of the backend used by the most recent successful initialization."""
    return _backend


def clear_model_cache() -> None:
    """Drop cached models so the next call re-reads credentials."""
    global _backend
    get_gemini_model.cache_clear()
    _backend = None
    logger.info("Cleared Gemini model cache")
