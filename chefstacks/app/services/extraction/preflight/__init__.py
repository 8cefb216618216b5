"""Preflight gate for video URLs."""

from chefstacks.app.services.extraction.preflight.classifier import (
    PreflightClassifier,
    RuleBasedTinyClassifier,
    TinyClassifier,
)
from chefstacks.app.services.extraction.preflight.metadata import (
    MetadataProvider,
    TranscriptSource,
    YouTubeMetadataProvider,
)

__all__ = [
    "MetadataProvider",
    "PreflightClassifier",
    "RuleBasedTinyClassifier",
    "TinyClassifier",
    "TranscriptSource",
    "YouTubeMetadataProvider",
]
