from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from engine.states.assistant_states import (
    Intent,
    ProductTier,
    Query,
    SessionContext,
    SessionSuggestion,
)


class CamelModel(BaseModel):
    """Wire models use camelCase; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionContextPayload(CamelModel):
    """Conversation memory sent back by the caller on every turn."""

    last_drug_name: Optional[str] = None
    last_intent: Optional[Intent] = None
    recent_drugs: list[str] = Field(default_factory=list)
    patient_context: Optional[str] = None

    def to_session(self) -> SessionContext:
        return SessionContext(
            last_drug_name=self.last_drug_name,
            last_intent=self.last_intent,
            recent_drugs=self.recent_drugs,
            patient_context=self.patient_context,
        )


class SuggestedSessionContext(SessionContextPayload):
    product_type: Optional[ProductTier] = None

    @classmethod
    def from_suggestion(cls, suggestion: SessionSuggestion) -> "SuggestedSessionContext":
        return cls(
            last_drug_name=suggestion.last_drug_name,
            last_intent=suggestion.last_intent,
            recent_drugs=list(suggestion.recent_drugs),
            patient_context=suggestion.patient_context,
            product_type=suggestion.product_type,
        )


class AssistantRequest(CamelModel):
    """Query endpoint payload.

    ``intent`` and ``drug_name`` may be omitted when ``text`` is given; they are
    then extracted from the text.
    """

    intent: Optional[Intent] = None
    drug_name: Optional[str] = Field(None, description="Medicine named in the question")
    text: Optional[str] = Field(None, description="Staff question as typed")
    needs: list[str] = Field(default_factory=list)
    sources: list[Literal["internal_db", "external_db", "web_search"]] = Field(
        default_factory=list
    )
    session_context: Optional[SessionContextPayload] = None

    @field_validator("drug_name", "text", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _intent_or_text(self) -> "AssistantRequest":
        if self.intent is None and not self.text:
            raise ValueError("either intent or text is required")
        return self

    def to_query(self) -> Query:
        return Query(
            text=self.text or "",
            intent=self.intent or Intent.OTHER,
            drug_name=self.drug_name,
            needs=frozenset(self.needs),
            sources=frozenset(self.sources or ["internal_db"]),
        )

    def session(self) -> SessionContext:
        if self.session_context is None:
            return SessionContext.empty()
        return self.session_context.to_session()


class AssistantResponse(CamelModel):
    response: str
    sources: list[str] = Field(default_factory=list)
    suggested_session_context: Optional[SuggestedSessionContext] = None


class IntentRequest(CamelModel):
    text: str = ""


class IntentResponse(CamelModel):
    intent: Intent
    drug_name: Optional[str] = None
    needs: list[str] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)

    @classmethod
    def from_query(cls, query: Query) -> "IntentResponse":
        return cls(
            intent=query.intent,
            drug_name=query.drug_name,
            needs=sorted(query.needs),
            sources=sorted(query.sources),
        )


class HealthResponse(BaseModel):
    """Simple health payload."""

    status: str = "healthy"
    service: str = "PharmAssist Clinical Query API"
