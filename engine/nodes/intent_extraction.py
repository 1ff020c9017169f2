"""First-pass intent extraction from free text.

Used when the caller does not supply an intent or drug name. A configured chat
model is tried first; any failure silently falls back to the keyword
heuristics below.
"""

import logging
import re
from typing import Literal, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from engine.prompts.assistant_prompts import intent_extraction_prompt
from engine.states.assistant_states import Intent, Query
from engine.tools.text_patterns import STRENGTH_RE

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    {
        # fillers
        "do", "we", "have", "in", "stock", "the", "a", "an", "is", "there",
        "any", "of", "for", "and", "please", "you", "how", "many", "much",
        "tell", "about", "what", "which", "more", "thank", "thanks", "can",
        "give", "information", "info", "with", "are", "me", "why", "when",
        "where", "does", "did", "has", "been", "be", "to", "on", "at", "by",
        "from", "as", "or", "all", "some", "other", "another", "this", "that",
        "these", "those", "it", "they", "them", "my", "your", "our", "need",
        "want", "would", "could", "should", "still", "left", "take", "taking",
        "use", "used", "uses", "check", "show", "list", "find", "get", "also",
        "available", "availability", "inventory", "price", "cost", "expiry",
        "expiration", "expire", "brand", "generic", "name", "local",
        # clinical question words
        "dosage", "dose", "doses", "dosing", "side", "effect", "effects",
        "usage", "indication", "indications", "warning", "warnings",
        "alternative", "alternatives", "substitute", "substitutes",
        "replacement", "similar", "recommended", "daily", "safe", "often",
        # patients
        "adult", "adults", "child", "children", "kid", "kids", "elderly",
        "senior", "baby", "infant", "teenager", "pregnant", "patient",
        # forms and units
        "tablet", "tablets", "capsule", "capsules", "syrup", "suspension",
        "cream", "ointment", "gel", "drops", "injection", "spray", "mg", "ml",
        "mcg", "g",
        # small talk
        "hi", "hello", "hey", "good", "morning", "afternoon", "evening",
        "who", "yes", "okay",
    }
)

_NAME_WITH_STRENGTH_RE = re.compile(
    r"([A-Za-z][A-Za-z\s\-]{1,80}?)\s*(\d{2,4}(?:\.\d+)?)\s?(mg|ml|mcg|g)\b",
    re.IGNORECASE,
)
_WORD_RE = re.compile(r"[A-Za-z][A-Za-z\-]*")

_DOSAGE_NEED_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"\bdosage\b",
        r"\bdose\b",
        r"\bhow\s+much\b",
        r"\bhow\s+many\b",
        r"\bhow\s+to\s+take\b",
        r"\bhow\s+often\b",
        r"\bposology\b",
        r"\badministration\b",
        r"\buse\b.*\bdirections?\b",
        r"\bdirections?\s+for\s+use\b",
        r"\btake\b.*\b\d{2,4}\s*mg\b",
        r"\bevery\s+\d{1,2}\s*(hours|hrs|h)\b",
    )
)


class IntentExtraction(BaseModel):
    """Structured output requested from the chat model."""

    intent: Intent = Field(description="Intent of the staff question")
    drug_name: Optional[str] = Field(
        default=None, description="Medicine named in the question, with strength"
    )
    needs: list[str] = Field(default_factory=list)
    sources: list[Literal["internal_db", "external_db", "web_search"]] = Field(
        default_factory=list
    )


def _strip_leading_stop_words(words: list[str]) -> list[str]:
    while words and words[0].lower() in STOP_WORDS:
        words = words[1:]
    return words


def extract_drug_name(text: str) -> Optional[str]:
    """Best-effort guess at the product named in ``text``.

    Tries "Name 500 mg" first, then up to three consecutive capitalized words,
    then the longest remaining lowercase word.
    """
    text = (text or "").strip()
    if not text:
        return None

    match = _NAME_WITH_STRENGTH_RE.search(text)
    if match:
        words = _strip_leading_stop_words(match.group(1).split())
        if words:
            return f"{' '.join(words)} {match.group(2)} {match.group(3).lower()}"

    tokens = _WORD_RE.findall(text)
    run: list[str] = []
    for token in tokens:
        if token[0].isupper() and len(token) >= 3 and token.lower() not in STOP_WORDS:
            run.append(token)
            if len(run) == 3:
                break
        elif run:
            break
    if run:
        return " ".join(run)

    cleaned = re.sub(r"[^a-z\s\-]", " ", text.lower())
    words = [w for w in cleaned.split() if len(w) >= 3 and w not in STOP_WORDS]
    if words:
        return max(words, key=len)
    return None


def compute_needs(text: str) -> set[str]:
    q = (text or "").lower()
    needs: set[str] = set()
    if any(k in q for k in ("stock", "available", "do you have", "do we have")):
        needs.add("stock")
    if any(p.search(q) for p in _DOSAGE_NEED_PATTERNS):
        needs.add("dosage")
    if any(k in q for k in ("warning", "contraindication", "side effect")):
        needs.add("warnings")
    if any(
        k in q
        for k in (
            "alternative",
            "substitute",
            "substitution",
            "other brand",
            "another brand",
            "equivalent",
        )
    ):
        needs.add("alternatives")
    if "price" in q or "cost" in q:
        needs.add("price")
    if "expiry" in q or "expire" in q or "expiration" in q:
        needs.add("expiry")
    if any(
        k in q for k in ("philippines", "ph brand", "brand in ph", "local name")
    ) or re.search(r"\bph\b", q):
        needs.add("local_name")
    return needs


def decide_intent(needs: set[str]) -> Intent:
    if not needs:
        return Intent.OTHER
    if "alternatives" in needs:
        return Intent.ALTERNATIVES
    if "stock" in needs and "dosage" in needs:
        return Intent.DRUG_INFO
    if "stock" in needs:
        return Intent.STOCK_CHECK
    if "dosage" in needs:
        return Intent.DOSAGE
    return Intent.DRUG_INFO


def decide_sources(needs: set[str], text: str) -> set[str]:
    q = (text or "").lower()
    sources: set[str] = set()
    if needs & {"stock", "price", "expiry", "local_name", "alternatives"}:
        sources.add("internal_db")
    if needs & {"dosage", "warnings"}:
        sources.add("external_db")
    if any(k in q for k in ("advisory", "recall", "update", "ph vs us", "difference")):
        sources.add("web_search")
    if not sources:
        sources.add("internal_db")
    return sources


def heuristic_extraction(text: str) -> Query:
    needs = compute_needs(text)
    return Query(
        text=text,
        intent=decide_intent(needs),
        drug_name=extract_drug_name(text),
        needs=frozenset(needs),
        sources=frozenset(decide_sources(needs, text)),
    )


async def extract_intent(
    text: str, model: Optional[BaseChatModel] = None
) -> Query:
    """Turn free text into a first-pass Query.

    Args:
        text: Staff question.
        model: Chat model for generative extraction. None skips straight to
            the heuristics.
    """
    if model is not None:
        try:
            result = await model.with_structured_output(IntentExtraction).ainvoke(
                [SystemMessage(content=intent_extraction_prompt), HumanMessage(content=text)]
            )
            if isinstance(result, IntentExtraction):
                drug_name = result.drug_name
                # a name the model did not read from the text is discarded
                if drug_name and not _mentioned(drug_name, text):
                    drug_name = None
                return Query(
                    text=text,
                    intent=result.intent,
                    drug_name=drug_name or None,
                    needs=frozenset(result.needs),
                    sources=frozenset(result.sources or ["internal_db"]),
                )
        except Exception as exc:
            logger.warning("LLM intent extraction failed, using heuristics: %s", exc)

    return heuristic_extraction(text)


def _mentioned(drug_name: str, text: str) -> bool:
    base = STRENGTH_RE.sub(" ", drug_name).strip().lower()
    first = base.split()[0] if base.split() else ""
    return bool(first) and first in text.lower()
