"""Pydantic models for the extraction and fusion pipeline."""

from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Provenance(str, Enum):
    """Which extraction layer produced a field."""

    STRUCTURED = "structured"
    MEMORIES_AI = "memories-ai"
    NOTES = "notes"
    PARSED = "parsed"
    TRANSCRIPT = "transcript"


class SourceKind(str, Enum):
    YOUTUBE = "video:youtube"
    TIKTOK = "video:tiktok"
    INSTAGRAM = "video:instagram"
    WEB = "web"

    @property
    def is_video(self) -> bool:
        return self is not SourceKind.WEB

    @property
    def platform(self) -> Optional[str]:
        if not self.is_video:
            return None
        return self.value.split(":", 1)[1]


class SourceURL(BaseModel):
    """A validated URL and the kind derived from it."""

    model_config = ConfigDict(frozen=True)

    url: str
    kind: SourceKind
    host: str
    video_id: Optional[str] = None


class ExtractedField(BaseModel, Generic[T]):
    """One extracted value tagged with the layer that produced it."""

    model_config = ConfigDict(populate_by_name=True)

    value: T
    from_: Provenance = Field(alias="from")
    ts: Optional[int] = None


class IngredientValue(BaseModel):
    text: str
    qty: Optional[str] = None
    unit: Optional[str] = None


class StepValue(BaseModel):
    order: int
    text: str
    title: Optional[str] = None
    image: Optional[str] = None
    chapter: Optional[str] = None


Ingredient = ExtractedField[IngredientValue]
Step = ExtractedField[StepValue]


class Times(BaseModel):
    prep_min: Optional[int] = None
    cook_min: Optional[int] = None
    total_min: Optional[int] = None

    def is_empty(self) -> bool:
        return self.prep_min is None and self.cook_min is None and self.total_min is None


class Chapter(BaseModel):
    timestamp: int
    title: str


class ConfidenceScores(BaseModel):
    ingredients: float = Field(0.0, ge=0.0, le=1.0)
    steps: float = Field(0.0, ge=0.0, le=1.0)
    times: float = Field(0.0, ge=0.0, le=1.0)
    pro_tips: Optional[float] = Field(None, ge=0.0, le=1.0)


class ExtractionDebug(BaseModel):
    layer: str = "none"
    attempts: List[str] = Field(default_factory=list)
    usedNotes: Optional[bool] = None
    hasStructuredData: Optional[bool] = None
    structuredDataType: Optional[str] = None
    cacheHit: Optional[bool] = None


class PartialRecipe(BaseModel):
    """Candidate fields produced by a single layer.

    Every scalar carries the layer's provenance through ``provenance``; list
    items are already wrapped in ``ExtractedField``.
    """

    provenance: Provenance
    title: Optional[str] = None
    author: Optional[str] = None
    image: Optional[str] = None
    servings: Optional[int] = None
    times: Times = Field(default_factory=Times)
    ingredients: List[Ingredient] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    chapters: List[Chapter] = Field(default_factory=list)
    markup: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            not self.ingredients
            and not self.steps
            and self.times.is_empty()
            and self.servings is None
            and not self.tips
        )


class FetchedPage(BaseModel):
    """What the page-fetch collaborator hands to the web layers."""

    url: str
    html: str = ""
    structured_data: Optional[List[Any]] = None
    notes: Optional[str] = None


class VideoMetadata(BaseModel):
    """Platform metadata for a video; every field is best effort."""

    duration_seconds: Optional[int] = None
    category_id: Optional[str] = None
    has_caption: bool = False
    title: str = ""
    description: str = ""
    topic_categories: List[str] = Field(default_factory=list)
    thumbnail_url: Optional[str] = None
    channel_title: Optional[str] = None


class FusedRecipe(BaseModel):
    """Final recipe returned to the caller for persistence."""

    title: str
    source_url: Optional[str] = None
    author: Optional[str] = None
    ingredients: List[Ingredient] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)
    times: Times = Field(default_factory=Times)
    servings: Optional[int] = None
    tips: List[str] = Field(default_factory=list)
    chapters: List[Chapter] = Field(default_factory=list)
    confidence: ConfidenceScores = Field(default_factory=ConfidenceScores)
    debug: ExtractionDebug = Field(default_factory=ExtractionDebug)
    image: Optional[str] = None


class ChecksDuration(BaseModel):
    pass_: bool = Field(True, alias="pass")
    value: Optional[int] = None
    reason: str = ""
    costTier: str = "low"

    model_config = ConfigDict(populate_by_name=True)


class ChecksCategory(BaseModel):
    score: int = 0
    categoryId: str = ""


class ChecksCaption(BaseModel):
    score: int = 0
    hasCaption: bool = False


class ChecksTopic(BaseModel):
    score: int = 0
    topics: List[str] = Field(default_factory=list)


class ChecksPatterns(BaseModel):
    score: int = 0
    hits: int = 0
    patterns: List[str] = Field(default_factory=list)


class ChecksAntiSignals(BaseModel):
    score: int = 0
    signals: List[str] = Field(default_factory=list)


class ChecksBreakdown(BaseModel):
    duration: ChecksDuration = Field(default_factory=ChecksDuration)
    category: ChecksCategory = Field(default_factory=ChecksCategory)
    caption: ChecksCaption = Field(default_factory=ChecksCaption)
    topic: ChecksTopic = Field(default_factory=ChecksTopic)
    patterns: ChecksPatterns = Field(default_factory=ChecksPatterns)
    antiSignals: ChecksAntiSignals = Field(default_factory=ChecksAntiSignals)


class TranscriptSniff(BaseModel):
    score: int = 0
    buckets: Dict[str, List[str]] = Field(default_factory=dict)


class ClassifierVerdict(BaseModel):
    isRecipe: bool
    confidence: float = Field(ge=0.0, le=1.0)
    score: int = 0


class CostEstimate(BaseModel):
    tier: str = "low"
    estimatedProcessingTime: int = 60
    warningMessage: Optional[str] = None


class UserMessage(BaseModel):
    title: str
    description: str
    suggestions: List[str] = Field(default_factory=list, max_length=3)
    canRetry: bool = False


class PreflightResult(BaseModel):
    """Outcome of the preflight gate for one video URL."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    pass_: bool = Field(alias="pass")
    score: int
    reason: str
    borderline: bool = False
    allowOverride: bool = False
    checks: ChecksBreakdown = Field(default_factory=ChecksBreakdown)
    transcriptSniff: Optional[TranscriptSniff] = None
    tinyClassifier: Optional[ClassifierVerdict] = None
    costEstimate: Optional[CostEstimate] = None
    userMessage: UserMessage


class ExtractionResult(BaseModel):
    """Result of an extraction request."""

    success: bool
    recipe: Optional[FusedRecipe] = None
    source_kind: Optional[SourceKind] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    status_code: Optional[int] = None
    preflight: Optional[PreflightResult] = None
    override_available: bool = False
    warnings: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
