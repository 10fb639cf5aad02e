"""Calendar Vibes - behavioral analytics over calendar events"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports for the analysis pipeline
def __getattr__(name: str):
    """
    Lazy imports to avoid loading heavy dependencies when only importing lightweight modules.
    """
    if name in ("AnalysisEngine", "AnalysisError", "analyze_events"):
        from calvibes.analysis import engine

        if name == "AnalysisEngine":
            return engine.AnalysisEngine
        if name == "AnalysisError":
            return engine.AnalysisError
        if name == "analyze_events":
            return engine.analyze_events

    if name in ("AnalysisReport", "MetaCategory", "RawEvent"):
        from calvibes.analysis import models

        if name == "AnalysisReport":
            return models.AnalysisReport
        if name == "MetaCategory":
            return models.MetaCategory
        if name == "RawEvent":
            return models.RawEvent

    if name == "CategoryCacheRepository":
        from calvibes.storage.category_cache import CategoryCacheRepository

        return CategoryCacheRepository

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "AnalysisEngine",
    "AnalysisError",
    "AnalysisReport",
    "CategoryCacheRepository",
    "MetaCategory",
    "RawEvent",
    "analyze_events",
]
