"""Compliance and safety screening that runs before any external fetch.

Every check here is deterministic and does no I/O, so a refused or incomplete
request never reaches the identity chain or the clinical providers.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from app.settings import settings
from core.domain.policy import (
    INTERACTION_PAIRS,
    InteractionPair,
    MISSING_DRUG_MESSAGE,
    form_clarification,
    interaction_alert,
    patient_clarification,
    prescription_refusal,
    strength_clarification,
)
from engine.nodes.classifier import classify_product
from engine.states.assistant_states import (
    ClinicalRecord,
    InfoFocus,
    Intent,
    ProductTier,
    Query,
    SessionContext,
)
from engine.tools.text_patterns import AGE_RE, FORM_RE, STRENGTH_RE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateOutcome:
    """Result of screening a query.

    ``reply`` is None when the request may proceed.
    """

    tier: Optional[ProductTier] = None
    reply: Optional[str] = None
    sources: tuple[str, ...] = ()
    reason: str = "passed"

    @property
    def blocked(self) -> bool:
        return self.reply is not None


def requests_clinical_content(query: Query) -> bool:
    if query.intent is Intent.DOSAGE:
        return True
    return query.intent is Intent.DRUG_INFO and query.focus in (
        InfoFocus.USAGE,
        InfoFocus.SIDE_EFFECTS,
        InfoFocus.DOSAGE,
    )


def unknown_medical_tier() -> ProductTier:
    try:
        return ProductTier(settings.UNKNOWN_MEDICAL_TIER)
    except ValueError:
        logger.warning(
            "Unknown UNKNOWN_MEDICAL_TIER %r, using prescription",
            settings.UNKNOWN_MEDICAL_TIER,
        )
        return ProductTier.PRESCRIPTION


def _is_different_drug(current: list[str], recent: list[str]) -> bool:
    return any(c not in recent for c in current) or any(r not in current for r in recent)


def check_interactions(
    drug_name: str,
    recent_drugs: tuple[str, ...],
    pairs: tuple[InteractionPair, ...] = INTERACTION_PAIRS,
) -> Optional[tuple[InteractionPair, list[str]]]:
    """Find a known interacting pair between ``drug_name`` and the session drugs.

    Matching is by substring so "Warfarin 5 mg" still hits "warfarin". A pair
    whose only match is the drug under discussion itself is ignored.
    """
    current = drug_name.lower()
    recent = [d.lower() for d in recent_drugs]
    if not recent:
        return None

    for pair in pairs:
        current_hits = [d for d in pair.drugs if d in current]
        recent_hits = [d for d in pair.drugs if any(d in r for r in recent)]
        if current_hits and recent_hits and _is_different_drug(current_hits, recent_hits):
            return pair, recent_hits
    return None


def check_completeness(query: Query, session: SessionContext) -> Optional[str]:
    """Return the clarifying question for the first missing dosage detail."""
    drug = query.drug_name or ""
    stated = f"{query.text or ''} {drug}"
    remembered = session.last_drug_name or ""

    if not FORM_RE.search(stated) and not FORM_RE.search(remembered):
        return form_clarification(drug)
    if not STRENGTH_RE.search(stated) and not STRENGTH_RE.search(remembered):
        return strength_clarification(drug)
    if not session.patient_context and not AGE_RE.search(query.text or ""):
        return patient_clarification(drug)
    return None


def screen(
    query: Query,
    session: SessionContext,
    default_tier: Optional[ProductTier] = None,
) -> GateOutcome:
    """Screen a resolved query before any external lookup.

    Order: missing drug, prescription block, interaction check, dosage
    completeness.
    """
    if query.intent is Intent.DOSAGE and not (query.drug_name or "").strip():
        return GateOutcome(
            reply=MISSING_DRUG_MESSAGE,
            sources=(settings.system_source,),
            reason="missing_drug",
        )

    if not requests_clinical_content(query) or not query.drug_name:
        return GateOutcome()

    tier = classify_product(
        query.drug_name,
        assume_medical=True,
        default=default_tier or unknown_medical_tier(),
    )
    if tier is ProductTier.PRESCRIPTION:
        logger.info("Blocking clinical request for prescription product %s", query.drug_name)
        return GateOutcome(
            tier=tier,
            reply=prescription_refusal(query.drug_name, clinical=query.intent is not Intent.DOSAGE),
            sources=(settings.clinical_source, "FDA Guidelines"),
            reason="prescription",
        )

    if query.intent is not Intent.DOSAGE:
        return GateOutcome(tier=tier)

    interaction = check_interactions(query.drug_name, session.recent_drugs)
    if interaction:
        pair, matched = interaction
        logger.info("Interaction alert for %s against %s", query.drug_name, matched)
        return GateOutcome(
            tier=tier,
            reply=interaction_alert(query.drug_name, pair.warning, matched),
            sources=(settings.clinical_source,),
            reason="interaction",
        )

    question = check_completeness(query, session)
    if question:
        return GateOutcome(
            tier=tier,
            reply=question,
            sources=(settings.system_source,),
            reason="incomplete",
        )

    return GateOutcome(tier=tier)


def redact(record: Optional[ClinicalRecord], tier: Optional[ProductTier]) -> Optional[ClinicalRecord]:
    """Strip clinical fields from a record about a prescription product."""
    if record is None or tier is not ProductTier.PRESCRIPTION:
        return record
    return record.model_copy(
        update={"dosage": None, "usage": None, "side_effects": None, "warnings": None}
    )


__all__ = [
    "GateOutcome",
    "check_completeness",
    "check_interactions",
    "redact",
    "requests_clinical_content",
    "screen",
]
