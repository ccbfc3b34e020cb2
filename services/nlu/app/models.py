"""Data models for the NLU engine"""

from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

EntityType = Literal["system", "pattern", "list"]
Tag = Literal["B", "I", "O"]


class SlotDefinition(BaseModel):
    """Slot declared on an intent"""
    name: str
    entity: List[str] = []


class IntentDefinition(BaseModel):
    """Intent as authored for a bot"""
    name: str
    utterances: List[str] = []
    slots: List[SlotDefinition] = []
    contexts: List[str] = ["global"]
    filename: Optional[str] = None


class EntityOccurence(BaseModel):
    """Canonical value of a list entity and its synonyms"""
    name: str
    tags: List[str] = []


class EntityDefinition(BaseModel):
    """Custom entity declared for a bot"""
    id: Optional[str] = None
    name: str
    type: EntityType
    pattern: Optional[str] = None
    occurences: List[EntityOccurence] = []


class Prediction(BaseModel):
    """Intent candidate returned by a classifier"""
    name: str
    confidence: float


class SelectedIntent(Prediction):
    """Selected intent with its name matcher"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    matches: Callable[[str], bool] = Field(exclude=True)


class EntityMeta(BaseModel):
    confidence: float
    provider: str
    source: str
    start: int
    end: int
    raw: Dict[str, Any] = {}


class EntityData(BaseModel):
    value: Any
    unit: str = "string"
    extras: Dict[str, Any] = {}


class Entity(BaseModel):
    """Entity found in text"""
    name: str
    type: EntityType
    meta: EntityMeta
    data: EntityData


class Slot(BaseModel):
    """Slot value extracted for the selected intent"""
    name: str
    value: Any
    source: str
    confidence: float
    entity: Optional[Entity] = None


class TrainingToken(BaseModel):
    value: str
    tag: Tag = "O"
    slot: Optional[str] = None


class TrainingSequence(BaseModel):
    """One utterance prepared for slot tagger training"""
    intent: str
    canonical: str
    tokens: List[TrainingToken]


class UnderstandingResult(BaseModel):
    """Outcome of one extraction.

    Fields are filled in pipeline order. `errored` stays True unless every
    stage completed, so a partially filled result must not be trusted.
    """
    language: Optional[str] = None
    intents: Optional[List[Prediction]] = None
    intent: Optional[SelectedIntent] = None
    entities: Optional[List[Entity]] = None
    slots: Optional[List[Slot]] = None
    errored: bool = True


class ExtractRequest(BaseModel):
    """Extraction request"""
    text: str


class IntentPayload(BaseModel):
    """Intent content written through the API, named by the route"""
    utterances: List[str] = []
    slots: List[SlotDefinition] = []
    contexts: List[str] = ["global"]


class SyncResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    bot_id: str
    synced: bool
    model_id: Optional[str] = None


class BotStatus(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    bot_id: str
    model_id: Optional[str] = None
    confidence_threshold: float
