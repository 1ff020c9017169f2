from enum import Enum
from operator import add
from typing import Annotated, Any, Literal, Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_RECENT_DRUGS = 5


class Intent(str, Enum):
    DRUG_INFO = "drug_info"
    STOCK_CHECK = "stock_check"
    DOSAGE = "dosage"
    ALTERNATIVES = "alternatives"
    OTHER = "other"


class ProductTier(str, Enum):
    PRESCRIPTION = "prescription"
    OTC = "otc"
    NON_MEDICAL = "non-medical"


class InfoFocus(str, Enum):
    """Which clinical field the staff member is asking about."""

    DOSAGE = "dosage"
    SIDE_EFFECTS = "sideEffects"
    USAGE = "usage"
    GENERAL = "general"


SourceToken = Literal["internal_db", "external_db", "web_search"]


class SessionContext(BaseModel):
    """Conversation memory owned by the caller.

    A new value is suggested back on every turn; the pipeline never keeps one
    between calls.
    """

    model_config = ConfigDict(frozen=True)

    last_drug_name: Optional[str] = None
    last_intent: Optional[Intent] = None
    recent_drugs: tuple[str, ...] = ()
    patient_context: Optional[str] = None

    @field_validator("recent_drugs", mode="before")
    @classmethod
    def _dedupe_recent(cls, value: Any) -> tuple[str, ...]:
        if not value:
            return ()
        kept: list[str] = []
        for name in value:
            if not isinstance(name, str) or not name.strip():
                continue
            name = name.strip()
            kept = [k for k in kept if k.lower() != name.lower()]
            kept.append(name)
        return tuple(kept[-MAX_RECENT_DRUGS:])

    @classmethod
    def empty(cls) -> "SessionContext":
        return cls()

    def remember(
        self,
        drug_name: Optional[str],
        intent: Optional[Intent],
        patient_context: Optional[str] = None,
    ) -> "SessionContext":
        recent = list(self.recent_drugs)
        if drug_name:
            recent.append(drug_name)
        return SessionContext(
            last_drug_name=drug_name or self.last_drug_name,
            last_intent=intent or self.last_intent,
            recent_drugs=recent,
            patient_context=patient_context or self.patient_context,
        )


class SessionSuggestion(SessionContext):
    """Session context suggested back to the caller after a turn."""

    product_type: Optional[ProductTier] = None


class Query(BaseModel):
    """A staff question plus the working hypothesis about it."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    intent: Intent = Intent.OTHER
    drug_name: Optional[str] = None
    needs: frozenset[str] = frozenset()
    sources: frozenset[SourceToken] = frozenset({"internal_db"})
    focus: InfoFocus = InfoFocus.GENERAL


class IdentityStep(BaseModel):
    """What one resolution strategy contributed."""

    mapped_name: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    provenance: list[str] = []


class DrugIdentity(BaseModel):
    raw_name: str
    mapped_name: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    provenance: list[str] = []

    def absorb(self, step: IdentityStep) -> "DrugIdentity":
        """Fold a strategy result in; a higher-confidence mapping replaces the current one."""
        mapped, confidence = self.mapped_name, self.confidence
        if step.mapped_name and step.confidence >= self.confidence:
            mapped, confidence = step.mapped_name, step.confidence
        provenance = list(self.provenance)
        provenance.extend(p for p in step.provenance if p not in provenance)
        return DrugIdentity(
            raw_name=self.raw_name,
            mapped_name=mapped,
            confidence=confidence,
            provenance=provenance,
        )

    @property
    def search_name(self) -> str:
        return self.mapped_name or self.raw_name


CLINICAL_FIELDS = ("dosage", "usage", "side_effects")


class ClinicalRecord(BaseModel):
    dosage: Optional[str] = None
    usage: Optional[str] = None
    side_effects: Optional[str] = None
    warnings: Optional[str] = None
    brand_us: Optional[str] = None
    citations: list[str] = []

    def merge(self, other: "ClinicalRecord") -> "ClinicalRecord":
        """Field-by-field merge; values already present on self win."""
        merged = {
            name: getattr(self, name) or getattr(other, name)
            for name in ("dosage", "usage", "side_effects", "warnings", "brand_us")
        }
        citations = list(self.citations)
        citations.extend(c for c in other.citations if c not in citations)
        return ClinicalRecord(**merged, citations=citations)

    def has_clinical_content(self) -> bool:
        return any(getattr(self, name) for name in CLINICAL_FIELDS)

    def is_empty(self) -> bool:
        return not (self.has_clinical_content() or self.warnings or self.brand_us)

    def for_focus(self, focus: InfoFocus) -> Optional[str]:
        if focus is InfoFocus.DOSAGE:
            return self.dosage
        if focus is InfoFocus.SIDE_EFFECTS:
            return self.side_effects
        if focus is InfoFocus.USAGE:
            return self.usage
        return self.usage or self.dosage or self.side_effects


class ResponseEnvelope(BaseModel):
    text: str
    sources: list[str] = []
    suggested_session_context: Optional[SessionSuggestion] = None

    @field_validator("sources", mode="after")
    @classmethod
    def _dedupe_sources(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for label in value:
            if label and label not in seen:
                seen.append(label)
        return seen


class AssistantState(TypedDict, total=False):
    query: Query
    session: SessionContext
    tier: ProductTier
    inventory: list[Any]
    alternatives: list[Any]
    identity: Optional[DrugIdentity]
    record: Optional[ClinicalRecord]
    advisories: list[Any]
    source_labels: Annotated[list[str], add]
    envelope: ResponseEnvelope


class InputState(TypedDict):
    query: Query
    session: SessionContext


class OutputState(TypedDict):
    envelope: ResponseEnvelope
