from functools import lru_cache

from chefstacks.app.core.config import get_settings
from chefstacks.app.services.extraction import ExtractionOrchestrator


@lru_cache
def get_orchestrator() -> ExtractionOrchestrator:
    return ExtractionOrchestrator(get_settings())
