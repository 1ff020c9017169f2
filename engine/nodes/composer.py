"""Response composition.

Two modes: ``llm`` asks the configured chat model to phrase the answer from
structured data only, ``template`` renders fixed templates. Generative mode
falls back to templates on any failure and is never used for prescription
products or when the clinical data the question needs is missing.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Literal, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from app.settings import settings
from core.domain.policy import (
    CONSULT_PROFESSIONAL,
    NO_INFORMATION_MESSAGE,
    NOT_AVAILABLE_MESSAGE,
    prescription_refusal,
    with_sources,
)
from engine.prompts.assistant_prompts import compose_response_prompt
from engine.states.assistant_states import (
    ClinicalRecord,
    InfoFocus,
    Intent,
    ProductTier,
    Query,
    ResponseEnvelope,
    SessionContext,
    SessionSuggestion,
)
from engine.tools.advisories import Advisory
from engine.tools.text_patterns import find_age_class, find_form, find_strength
from persistence.models import InventoryRow

logger = logging.getLogger(__name__)

INVENTORY_NEEDS = frozenset({"stock", "price", "expiry"})


@dataclass
class CompositionInput:
    query: Query
    session: SessionContext
    tier: Optional[ProductTier] = None
    products: list[InventoryRow] = field(default_factory=list)
    alternatives: list[InventoryRow] = field(default_factory=list)
    record: Optional[ClinicalRecord] = None
    advisories: list[Advisory] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    consulted: list[str] = field(default_factory=list)


class ComposedResponse(BaseModel):
    response: str
    tone: Literal["factual", "helpful", "cautious"] = "factual"


def wants_clinical(query: Query) -> bool:
    return query.intent is Intent.DOSAGE or (
        query.intent is Intent.DRUG_INFO and query.focus is not InfoFocus.GENERAL
    )


def clinical_data_missing(data: CompositionInput) -> bool:
    if not wants_clinical(data.query):
        return False
    record = data.record or ClinicalRecord()
    return not record.for_focus(data.query.focus)


def suggest_session_context(
    query: Query,
    session: SessionContext,
    tier: Optional[ProductTier] = None,
    products: Optional[list[InventoryRow]] = None,
) -> Optional[SessionSuggestion]:
    """Conservative next-turn context.

    Strength and dosage form are appended to the drug name only when the staff
    member stated them in this turn.
    """
    drug = query.drug_name
    if query.intent is Intent.STOCK_CHECK and products:
        drug = products[0].name
    if not drug:
        return None

    strength = find_strength(query.text)
    if strength and strength not in drug.lower().replace(" ", ""):
        drug = f"{drug} {strength}"
    form = find_form(query.text)
    if form and form not in drug.lower():
        drug = f"{drug} {form}"

    remembered = session.remember(drug, query.intent, find_age_class(query.text))
    return SessionSuggestion(**remembered.model_dump(), product_type=tier)


def _stock_lines(rows: list[InventoryRow], limit: int = 5) -> str:
    lines = [f"{i}. {row.stock_line()}" for i, row in enumerate(rows[:limit], start=1)]
    if len(rows) > limit:
        lines.append(f"\n...and {len(rows) - limit} more")
    return "\n".join(lines)


def _first_sentence(pattern: str, text: str) -> tuple[Optional[str], int]:
    match = re.search(pattern, text, re.IGNORECASE)
    if not match or not match.group(1):
        return None, 0
    return match.group(1).strip(), match.end()


def otc_dosage_summary(drug_name: str, record: ClinicalRecord) -> str:
    dosage = re.sub(r"\s+", " ", record.dosage or "").strip()
    parts = [f"{drug_name}:"]

    adult, end = _first_sentence(r"adults?\s*:?\s*([^.]+)", dosage)
    if adult:
        parts.append(f"Adult {adult}.")
    else:
        parts.append(dosage if len(dosage) <= 200 else f"{dosage[:200].rstrip()}...")

    # children are often mentioned inside the adult sentence
    pediatric, _ = _first_sentence(
        r"(?:pediatric|children|child)\s*:?\s*([^.]+)", dosage[end:]
    )
    if pediatric:
        parts.append(f"Pediatric: {pediatric}.")

    if record.warnings:
        warning = record.warnings.strip()
        if len(warning) > 150:
            warning = f"{warning[:150].rstrip()}..."
        parts.append(f"⚠️ Warning: {warning}")

    parts.append(CONSULT_PROFESSIONAL)
    return " ".join(parts)


class ResponseComposer:
    def __init__(self, model: Optional[BaseChatModel] = None, mode: Optional[str] = None):
        self.model = model
        self.mode = (mode or settings.COMPOSER_MODE).lower()

    def uses_llm(self, data: CompositionInput) -> bool:
        return (
            self.mode == "llm"
            and self.model is not None
            and data.tier is not ProductTier.PRESCRIPTION
            and not clinical_data_missing(data)
        )

    async def compose(self, data: CompositionInput) -> ResponseEnvelope:
        sources = list(data.sources)
        text = None

        if self.uses_llm(data):
            text = await self._compose_llm(data)

        if not text:
            text, template_sources = self.compose_template(data)
            if template_sources is not None:
                sources = template_sources

        return ResponseEnvelope(
            text=with_sources(text, sources),
            sources=sources,
            suggested_session_context=suggest_session_context(
                data.query, data.session, data.tier, data.products
            ),
        )

    async def _compose_llm(self, data: CompositionInput) -> Optional[str]:
        payload = self._structured_payload(data)
        try:
            result = await asyncio.wait_for(
                self.model.with_structured_output(ComposedResponse).ainvoke(
                    [
                        SystemMessage(
                            content=compose_response_prompt.format(
                                assistant_name=settings.ASSISTANT_NAME
                            )
                        ),
                        HumanMessage(content=json.dumps(payload, default=str)),
                    ]
                ),
                timeout=settings.LLM_TIMEOUT,
            )
        except Exception as exc:
            logger.warning("LLM composition failed, using templates: %s", exc)
            return None

        if isinstance(result, ComposedResponse) and result.response.strip():
            return result.response.strip()
        logger.warning("LLM composition returned nothing, using templates")
        return None

    def _structured_payload(self, data: CompositionInput) -> dict:
        query = data.query
        payload = {
            "userQuery": query.text or f"{query.intent.value.replace('_', ' ')} for {query.drug_name}",
            "intent": query.intent.value,
            "drugName": query.drug_name,
            "productType": data.tier.value if data.tier else None,
            "sources": data.sources,
        }
        dosage_only = query.intent is Intent.DOSAGE and not (query.needs & INVENTORY_NEEDS)
        if data.products and not dosage_only and query.focus is InfoFocus.GENERAL:
            payload["internalData"] = {
                "products": [p.model_dump(mode="json") for p in data.products[:5]],
            }
            if query.intent is Intent.ALTERNATIVES:
                payload["internalData"]["alternatives"] = [
                    a.model_dump(mode="json") for a in data.alternatives[:5]
                ]
        if data.record and not data.record.is_empty():
            payload["externalData"] = data.record.model_dump(exclude={"citations"})
        if data.advisories:
            payload["advisories"] = [a.model_dump() for a in data.advisories]
        return payload

    def compose_template(self, data: CompositionInput) -> tuple[str, Optional[list[str]]]:
        """Render the fixed template for (intent, tier, data availability).

        Returns the text and, when the template implies its own sources, the
        replacement source list.
        """
        query = data.query
        drug = query.drug_name or "this product"
        record = data.record or ClinicalRecord()

        if data.tier is ProductTier.PRESCRIPTION and wants_clinical(query):
            return (
                prescription_refusal(drug, clinical=query.intent is not Intent.DOSAGE),
                [settings.clinical_source, "FDA Guidelines"],
            )

        if clinical_data_missing(data):
            return NOT_AVAILABLE_MESSAGE, list(data.consulted) or None

        if query.intent is Intent.STOCK_CHECK and data.products:
            if len(data.products) == 1:
                return f"{data.products[0].stock_line()}.", None
            return (
                f'Found {len(data.products)} products matching "{drug}":\n\n'
                f"{_stock_lines(data.products)}",
                None,
            )

        if query.intent is Intent.ALTERNATIVES:
            alternatives = data.alternatives
            if not alternatives:
                return f"No alternatives found for {drug} in our current inventory.", None
            if len(alternatives) == 1:
                alt = alternatives[0]
                return f"Alternative to {drug}: {alt.stock_line().replace(': ', ' - ', 1)}.", None
            return f"Alternatives to {drug}:\n\n{_stock_lines(alternatives)}", None

        if query.intent is Intent.DOSAGE and record.dosage:
            text = otc_dosage_summary(drug, record)
            if data.products and query.needs & INVENTORY_NEEDS:
                text = f"{text}\n\n📦 {data.products[0].stock_line()}."
            return text, None

        clinical = record.for_focus(query.focus) if query.intent is Intent.DRUG_INFO else None
        if clinical:
            text = f"{drug}: {clinical}"
            if record.warnings and query.focus is not InfoFocus.SIDE_EFFECTS:
                text = f"{text}\n\n⚠️ Warning: {record.warnings}"
            return text, None

        if data.products and query.intent in (Intent.DRUG_INFO, Intent.OTHER):
            if len(data.products) == 1:
                return f"{data.products[0].stock_line()}.", None
            return f"{_stock_lines(data.products)}", None

        return NO_INFORMATION_MESSAGE, None
