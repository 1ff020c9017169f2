"""Three-tier product classification (prescription / otc / non-medical).

Classification is a pure function of whatever evidence is currently known
about a product. Callers run it again whenever better evidence arrives (for
instance after the inventory lookup supplies a dosage form and category), and
the result is never cached.
"""

import re
from typing import Optional

from engine.states.assistant_states import ProductTier

NON_MEDICAL_CATEGORIES = (
    "toiletries",
    "cosmetics",
    "personal care",
    "baby products",
    "household",
    "accessories",
    "beauty",
    "skincare",
)

MEDICAL_FORMS = frozenset(
    {
        "TABLET",
        "CAPSULE",
        "SYRUP",
        "SUSPENSION",
        "INJECTION",
        "OINTMENT",
        "CREAM",
        "GEL",
        "DROPS",
        "INHALER",
        "SPRAY",
        "PATCH",
        "SUPPOSITORY",
        "SOLUTION",
        "LOTION",
        "POWDER",
        "MOUTHWASH",
    }
)

OTC_CATEGORIES = (
    "pain relief",
    "analgesics",
    "fever reducers",
    "paracetamol",
    "cough and cold",
    "allergy relief",
    "antihistamine",
    "antacids",
    "vitamins",
    "supplements",
    "first aid",
    "topical",
    "antiseptic",
    "digestive aids",
    "eye drops",
    "nasal spray",
    "throat lozenges",
)

PRESCRIPTION_CATEGORIES = (
    "antibiotics",
    "hypertension",
    "diabetes",
    "heart medication",
    "psychiatric",
    "hormones",
    "controlled substance",
    "cancer treatment",
    "blood pressure",
    "cholesterol",
    "antidepressant",
    "steroid",
)

# Common local brands and generics
OTC_NAME_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"paracetamol|acetaminophen|biogesic|tempra|calpol",
        r"ibuprofen|advil|midol|medicol",
        r"cetirizine|zyrtec|allerkid",
        r"loratadine|claritin",
        r"mefenamic|ponstan|dolfenal",
        r"aspirin|bayer",
        r"vitamin|centrum|enervon|berocca|b.?complex|multivitamin",
        r"neozep|bioflu|decolgen|tuseran",
        r"kremil|gaviscon|mylanta|antacid",
        r"betadine|povidone|hydrogen peroxide",
        r"oral rehydration|\bors\b",
    )
)

PRESCRIPTION_NAME_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"amoxicillin|augmentin|cephalexin|azithromycin",
        r"amlodipine|losartan|atenolol|metoprolol",
        r"metformin|glimepiride|insulin",
        r"omeprazole|lansoprazole|esomeprazole",
        r"atorvastatin|simvastatin|rosuvastatin",
        r"prednisone|prednisolone|dexamethasone",
        r"sertraline|fluoxetine|escitalopram",
        r"warfarin|lisinopril",
    )
)


def _form_key(dosage_form: str) -> str:
    key = dosage_form.strip().upper()
    # "Tablets", "Capsules" and friends
    if key not in MEDICAL_FORMS and key.endswith("S") and key[:-1] in MEDICAL_FORMS:
        return key[:-1]
    return key


def has_medical_form(dosage_form: Optional[str]) -> bool:
    return bool(dosage_form) and _form_key(dosage_form) in MEDICAL_FORMS


def matches_known_drug(name: Optional[str]) -> bool:
    """True when the name hits one of the curated brand/generic patterns."""
    if not name:
        return False
    lowered = name.lower()
    return any(
        p.search(lowered) for p in OTC_NAME_PATTERNS + PRESCRIPTION_NAME_PATTERNS
    )


def classify_product(
    product_name: Optional[str],
    generic_name: Optional[str] = None,
    dosage_form: Optional[str] = None,
    category_name: Optional[str] = None,
    *,
    assume_medical: bool = False,
    default: ProductTier = ProductTier.PRESCRIPTION,
) -> ProductTier:
    """Classify a product from the evidence at hand.

    Args:
        product_name: Name as typed or as stored in the catalogue.
        generic_name: Active ingredient, when known.
        dosage_form: Catalogue dosage form (TABLET, SYRUP, ...).
        category_name: Catalogue category name.
        assume_medical: Skip the dosage-form screen. Used when the request
            itself is clinical and no catalogue row supplies a form.
        default: Tier for medical products nothing else recognises.

    Returns:
        The product tier. Never raises.
    """
    category = (category_name or "").lower()

    if category and any(k in category for k in NON_MEDICAL_CATEGORIES):
        return ProductTier.NON_MEDICAL

    if not assume_medical and not has_medical_form(dosage_form):
        return ProductTier.NON_MEDICAL

    if category:
        if any(k in category for k in OTC_CATEGORIES):
            return ProductTier.OTC
        if any(k in category for k in PRESCRIPTION_CATEGORIES):
            return ProductTier.PRESCRIPTION

    names = f"{product_name or ''} {generic_name or ''}".lower()
    if any(p.search(names) for p in OTC_NAME_PATTERNS):
        return ProductTier.OTC
    if any(p.search(names) for p in PRESCRIPTION_NAME_PATTERNS):
        return ProductTier.PRESCRIPTION

    return default
