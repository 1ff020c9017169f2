"""Fixed staff-facing messages and the drug interaction table."""

from dataclasses import dataclass
from typing import Iterable

from engine.tools.text_patterns import strip_strengths

NOT_AVAILABLE_MESSAGE = (
    "Clinical details for this drug are not available from approved sources right now."
)
NO_INFORMATION_MESSAGE = "I don't have that information right now."
MISSING_DRUG_MESSAGE = (
    "I need to know which medication you're asking about for dosage information. "
    "Could you please specify the drug name?"
)
ALERT_RECOMMENDATION = (
    "Review patient medication profile and assess clinical significance. "
    "Consider alternative therapy, dosage adjustment, or enhanced monitoring as appropriate."
)
CONSULT_PROFESSIONAL = "Consult a licensed healthcare professional before use."


@dataclass(frozen=True)
class InteractionPair:
    drugs: tuple[str, str]
    warning: str


INTERACTION_PAIRS: tuple[InteractionPair, ...] = (
    # blood thinners + NSAIDs
    InteractionPair(("warfarin", "aspirin"), "increased bleeding risk"),
    InteractionPair(("warfarin", "ibuprofen"), "increased bleeding risk"),
    InteractionPair(
        ("paracetamol", "acetaminophen"), "potential overdose - same active ingredient"
    ),
    # ACE inhibitors + potassium
    InteractionPair(("lisinopril", "potassium"), "possible hyperkalemia"),
    InteractionPair(("omeprazole", "calcium"), "reduced absorption"),
)


def prescription_refusal(
    drug_name: str, clinical: bool = False, inventory_note: str = ""
) -> str:
    """Refusal for prescription-only products.

    ``inventory_note`` replaces the supervision paragraph when stock is known.
    """
    withheld = (
        "clinical information including dosage, usage, or side effects"
        if clinical
        else "dosage information"
    )
    middle = inventory_note or (
        "Prescription-only medications require professional medical supervision and "
        "should only be used as directed by a licensed healthcare provider."
    )
    name = strip_strengths(drug_name or "") or "This medication"
    return (
        f"{name} is a prescription-only medication. "
        f"For your safety, I cannot provide {withheld} without a valid prescription "
        f"from a physician.\n\n{middle}\n\n"
        "Please consult your physician or pharmacist for proper guidance."
    )


def form_clarification(drug_name: str) -> str:
    return (
        "For safety reasons, I need more specific information to provide accurate "
        "dosage guidance. Could you please specify the strength and dosage form of "
        f"{drug_name}? (e.g., 500mg tablet, 250mg capsule, 5ml syrup, etc.)"
    )


def strength_clarification(drug_name: str) -> str:
    return (
        "For safety reasons, I need the specific strength to provide accurate dosage "
        f"guidance. Could you please specify the strength of {drug_name}? "
        "(e.g., 500mg, 250mg, 5ml, etc.)"
    )


def patient_clarification(drug_name: str) -> str:
    return (
        f"For safety, may I know if this {drug_name} dosage is for an adult, elderly "
        "patient, or child? This helps me provide appropriate guidance."
    )


def interaction_alert(drug_name: str, warning: str, recent: Iterable[str]) -> str:
    return (
        f"⚠️ CLINICAL ALERT: Potential drug interaction detected between {drug_name} "
        "and recently discussed medications.\n\n"
        f"Interaction Level: {warning}\n\n"
        f"Recommendation: {ALERT_RECOMMENDATION}\n\n"
        f"Recent medications in session: {', '.join(recent)}"
    )


def not_in_inventory(drug_name: str) -> str:
    return (
        f"{drug_name} is not available in our current inventory. "
        "I can only provide information about products we have in stock."
    )


def non_medical_only(product_name: str) -> str:
    return (
        f"{product_name} is available in our inventory. For specific product "
        "information, please ask about stock availability or pricing."
    )


def with_sources(text: str, sources: Iterable[str]) -> str:
    """Append a Sources footer unless the text already carries one."""
    labels = [s for s in sources if s]
    if not labels or "Sources:" in text:
        return text
    return f"{text}\n\nSources: {', '.join(labels)}"
