"""Recipe extraction: preflight gate, web and video extractors, fusion."""

from chefstacks.app.services.extraction.errors import ExtractionError
from chefstacks.app.services.extraction.fusion import ConfidenceFusionEngine
from chefstacks.app.services.extraction.models import ExtractionResult, FusedRecipe, PreflightResult
from chefstacks.app.services.extraction.orchestrator import ExtractionOrchestrator
from chefstacks.app.services.extraction.preflight import PreflightClassifier
from chefstacks.app.services.extraction.video_client import VideoExtractionClient
from chefstacks.app.services.extraction.web_extractor import WebExtractor

__all__ = [
    "ConfidenceFusionEngine",
    "ExtractionError",
    "ExtractionOrchestrator",
    "ExtractionResult",
    "FusedRecipe",
    "PreflightClassifier",
    "PreflightResult",
    "VideoExtractionClient",
    "WebExtractor",
]
