"""Regular expressions shared by the intent, safety and composer steps."""

import re
from typing import Optional

SIDE_EFFECTS_RE = re.compile(
    r"(side\s?effects?|adverse\s?reactions?|undesirable\s?effects?|adverse\s?events?"
    r"|reactions?|complications?|risks?|dangerous)",
    re.IGNORECASE,
)
USAGE_RE = re.compile(
    r"(usage|indications?|what\s+is\s+.*used\s+for|what\s+is\s+this\s+for"
    r"|what\s+is\s+it\s+for|what\s+does\s+.*do|what\s+is\s+the\s+use\s+of"
    r"|use\s+of|used\s+for|uses?\s+for|purpose\s+of|\btreats?\b|\bgood\s+for\b)",
    re.IGNORECASE,
)
DOSAGE_RE = re.compile(
    r"(dosage|dose|how much|how many|dosing|what is the dose|what dose"
    r"|recommended dose|daily dose|how to take|how should i take|take how much"
    r"|dosage of|dose of)",
    re.IGNORECASE,
)
ALTERNATIVES_RE = re.compile(
    r"\b(alternative(s)?|substitute(s)?|replacement(s)?|similar)\b", re.IGNORECASE
)
NEEDS_DRUG_RE = re.compile(
    r"\b(usage|dosage|dose|side\s?effects?|indications?|what is it|for it|about it|it)\b",
    re.IGNORECASE,
)
STRENGTH_RE = re.compile(
    r"\b\d+(?:\.\d+)?\s?(mg|ml|mcg|μg|g|gram|milligram|microgram|milliliter)s?\b",
    re.IGNORECASE,
)
FORM_RE = re.compile(
    r"\b(tablet|capsule|gelcap|caplet|syrup|suspension|liquid|injection|cream"
    r"|ointment|gel|patch|drops|inhaler|spray|suppository|solution|lotion|powder"
    r"|mouthwash)s?\b",
    re.IGNORECASE,
)
AGE_RE = re.compile(
    r"\b(adult|child|children|kid|elderly|senior|baby|infant|teenager|pregnant)s?\b",
    re.IGNORECASE,
)
FOLLOW_UP_RE = re.compile(
    r"(\b(how|what)\s+about\b|\b(and|also)\s+\w+\?*$)", re.IGNORECASE
)
BARE_STRENGTH_RE = re.compile(
    r"^\s*\d+(?:\.\d+)?\s?(mg|ml|mcg|g)s?(\s+[a-z]+)?\s*[?.!]*\s*$", re.IGNORECASE
)

STOCK_RE = re.compile(
    r"\b(stock|in stock|available|availability|inventory|do we have|have any|how many left)\b",
    re.IGNORECASE,
)
PRICE_RE = re.compile(r"\b(price|cost|how much is|magkano)\b", re.IGNORECASE)
EXPIRY_RE = re.compile(r"\b(expir\w*|expiry|best before)\b", re.IGNORECASE)
WARNING_RE = re.compile(
    r"\b(warning|warnings|contraindication\w*|precaution\w*|interaction\w*|safe)\b",
    re.IGNORECASE,
)
LOCAL_NAME_RE = re.compile(
    r"\b(local name|brand name|generic name|also called|known as)\b", re.IGNORECASE
)
WEB_RE = re.compile(
    r"\b(recall\w*|advisor\w*|alert\w*|news|latest|fda warning)\b", re.IGNORECASE
)

_AGE_CANONICAL = {
    "child": "child",
    "children": "child",
    "kid": "child",
    "baby": "infant",
    "infant": "infant",
    "teenager": "teenager",
    "elderly": "elderly",
    "senior": "elderly",
    "adult": "adult",
    "pregnant": "pregnant",
}


def find_strength(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    match = STRENGTH_RE.search(text)
    return match.group(0).replace(" ", "").lower() if match else None


def find_form(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    match = FORM_RE.search(text)
    return match.group(1).lower() if match else None


def find_age_class(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    match = AGE_RE.search(text)
    if not match:
        return None
    return _AGE_CANONICAL.get(match.group(1).lower(), match.group(1).lower())


def strip_strengths(name: str) -> str:
    return re.sub(r"\s+", " ", STRENGTH_RE.sub(" ", name)).strip()


def strip_forms(name: str) -> str:
    return re.sub(r"\s+", " ", FORM_RE.sub(" ", name)).strip()
