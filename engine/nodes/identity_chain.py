"""Drug identity resolution: local brand or generic name to a US generic.

Strategies run in order and share one contract: given the raw name, optional
inventory hints and the identity so far, return an IdentityStep or None. The
chain stops at the first identity that clears the acceptance threshold.
"""

import logging
from typing import Optional, Protocol
from urllib.parse import quote_plus

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from app.settings import settings
from engine.prompts.assistant_prompts import identity_mapping_prompt
from engine.states.assistant_states import DrugIdentity, IdentityStep
from engine.tools.rxnorm import RxNormClient

logger = logging.getLogger(__name__)

MIMS_LABEL = "MIMS Philippines"


class IdentityHints(BaseModel):
    brand_name: Optional[str] = None
    generic_name: Optional[str] = None


class IdentityStrategy(Protocol):
    name: str

    async def resolve(
        self, raw_name: str, hints: IdentityHints, current: DrugIdentity
    ) -> Optional[IdentityStep]: ...


class MappingResult(BaseModel):
    mapped_name: str = Field(default="", description="US generic search term, with strength")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class AIMappingStrategy:
    name = "ai_mapping"

    def __init__(self, model: Optional[BaseChatModel]):
        self.model = model

    async def resolve(
        self, raw_name: str, hints: IdentityHints, current: DrugIdentity
    ) -> Optional[IdentityStep]:
        if self.model is None:
            return None

        lines = [f"Name: {raw_name}"]
        if hints.brand_name:
            lines.append(f"PH Brand: {hints.brand_name}")
        if hints.generic_name:
            lines.append(f"Generic (PH): {hints.generic_name}")
        lines.append("Output a US-equivalent OpenFDA search term.")

        try:
            result = await self.model.with_structured_output(MappingResult).ainvoke(
                [
                    SystemMessage(content=identity_mapping_prompt),
                    HumanMessage(content="\n".join(lines)),
                ]
            )
        except Exception as exc:
            logger.warning("AI mapping failed for %s: %s", raw_name, exc)
            return None

        if not isinstance(result, MappingResult) or not result.mapped_name.strip():
            return None
        return IdentityStep(
            mapped_name=result.mapped_name.strip().lower(),
            confidence=result.confidence,
            provenance=[f"AI mapping: {raw_name} -> {result.mapped_name.strip()}"],
        )


class RxNormStrategy:
    name = "rxnorm"

    def __init__(self, client: RxNormClient):
        self.client = client

    async def resolve(
        self, raw_name: str, hints: IdentityHints, current: DrugIdentity
    ) -> Optional[IdentityStep]:
        # an earlier mapping is a better query than the local name
        term = current.mapped_name or hints.generic_name or raw_name
        step = await self.client.map_to_generic(term)
        return step if step.mapped_name or step.provenance else None


def web_search_link(raw_name: str) -> str:
    return f"{settings.MIMS_SEARCH_URL}?q={quote_plus(raw_name)}"


def with_web_search_link(identity: DrugIdentity) -> DrugIdentity:
    """Attach the MIMS Philippines search link as a last-resort pointer."""
    return identity.absorb(IdentityStep(provenance=[web_search_link(identity.raw_name)]))


class IdentityResolutionChain:
    def __init__(
        self,
        strategies: list[IdentityStrategy],
        accept_confidence: Optional[float] = None,
        low_confidence: Optional[float] = None,
    ):
        self.strategies = strategies
        self.accept_confidence = (
            settings.IDENTITY_ACCEPT_CONFIDENCE if accept_confidence is None else accept_confidence
        )
        self.low_confidence = (
            settings.IDENTITY_LOW_CONFIDENCE if low_confidence is None else low_confidence
        )

    async def resolve(
        self, raw_name: str, hints: Optional[IdentityHints] = None
    ) -> tuple[DrugIdentity, list[str]]:
        """Resolve ``raw_name``; returns the identity and the source labels it earned."""
        hints = hints or IdentityHints()
        identity = DrugIdentity(raw_name=raw_name)

        for strategy in self.strategies:
            try:
                step = await strategy.resolve(raw_name, hints, identity)
            except Exception as exc:
                logger.warning("Identity strategy %s failed: %s", strategy.name, exc)
                step = None
            if step is None:
                continue
            identity = identity.absorb(step)
            if identity.mapped_name and identity.confidence >= self.accept_confidence:
                break

        labels: list[str] = []
        if identity.confidence < self.low_confidence:
            identity = with_web_search_link(identity)
            labels.append(MIMS_LABEL)

        logger.info(
            "Identity for %r: %r (confidence %.2f)",
            raw_name,
            identity.mapped_name,
            identity.confidence,
        )
        return identity, labels
