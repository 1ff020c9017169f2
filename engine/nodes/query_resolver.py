"""Intent and context resolution.

The resolver runs an ordered list of named rules over a first-pass Query and
the caller's SessionContext. Each rule is a pure predicate plus an effect, so
precedence is simply the position in ``INTENT_RULES``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from engine.nodes.classifier import matches_known_drug
from engine.states.assistant_states import InfoFocus, Intent, Query, SessionContext
from engine.tools.text_patterns import (
    AGE_RE,
    ALTERNATIVES_RE,
    BARE_STRENGTH_RE,
    DOSAGE_RE,
    FOLLOW_UP_RE,
    FORM_RE,
    NEEDS_DRUG_RE,
    SIDE_EFFECTS_RE,
    STRENGTH_RE,
    USAGE_RE,
)

logger = logging.getLogger(__name__)

OUT_OF_SCOPE_REPLY = (
    "I'm a pharmacy assistant. How can I help with inventory or drug information today?"
)

_OUT_OF_SCOPE_PATTERNS = tuple(
    re.compile(p)
    for p in (
        # small talk
        r"^(hi|hello|hey|good\s+morning|good\s+afternoon|good\s+evening|how\s+are\s+you"
        r"|what\s+is\s+your\s+name|who\s+are\s+you)[\s?!]*$",
        # a single unrecognised word
        r"^[a-z]{3,}[\s?!]*$",
        # personal health advice
        r"\b(should\s+i\s+see\s+a\s+doctor|am\s+i\s+sick|diagnose\s+me"
        r"|what\s+illness\s+do\s+i\s+have|medical\s+advice\s+for\s+me)\b",
        r"\b(weather|sports|politics|news|cooking|travel|movies|music|games)\b",
        r"\b(water|juice|soda|coffee|tea|food|snacks|candy|chocolate|bread|milk|rice"
        r"|vegetables|fruits)\b",
        r"\b(how\s+to\s+lose\s+weight|diet\s+plan|exercise\s+routine|healthy\s+lifestyle"
        r"|nutrition\s+advice)\b",
        r"\b(how\s+does\s+this\s+work|technical\s+support|bug\s+report|feature\s+request"
        r"|system\s+error)\b",
        r"\b(prescription\s+without\s+doctor|illegal\s+drugs"
        r"|controlled\s+substances\s+without\s+prescription)\b",
        r"^(help|what\s+can\s+you\s+do|tell\s+me\s+everything|explain)[\s?!]*$",
    )
)

_PHARMACY_KEYWORDS = tuple(
    re.compile(p)
    for p in (
        r"\b(stock|inventory|price|cost|available|expiry|expire)\b",
        r"\b(dosage|dose|how\s+much|how\s+often|side\s+effects|indication|contraindication)\b",
        r"\b(tablet|capsule|syrup|suspension|injection|cream|ointment|drops)\b",
        r"\b(paracetamol|ibuprofen|amoxicillin|metformin|aspirin|vitamin|medicine"
        r"|medication|drug)\b",
        r"\b(prescription|otc|over\s+the\s+counter|generic|brand)\b",
    )
)

_GREETING_OR_GIBBERISH_RE = re.compile(
    r"^(hi|hello|hey|good\s+morning|good\s+afternoon|good\s+evening|what's\s+up|sup|yo"
    r"|test|testing|\?\?\?|\.\.\.|\w{1,3})[\s?!]*$",
    re.IGNORECASE,
)


def has_pharmacy_keyword(text: str) -> bool:
    lowered = text.lower()
    return any(p.search(lowered) for p in _PHARMACY_KEYWORDS) or matches_known_drug(
        lowered
    )


def is_out_of_scope(text: str) -> bool:
    """Small talk, off-topic or unrecognised text with no pharmacy keyword."""
    if has_pharmacy_keyword(text):
        return False
    lowered = text.strip().lower()
    return any(p.search(lowered) for p in _OUT_OF_SCOPE_PATTERNS)


def is_greeting_or_gibberish(text: str) -> bool:
    return bool(_GREETING_OR_GIBBERISH_RE.match(text.strip()))


def detect_focus(text: str, intent: Intent) -> InfoFocus:
    """Provider hint: which clinical field the question is about."""
    if intent is Intent.DOSAGE:
        return InfoFocus.DOSAGE
    if SIDE_EFFECTS_RE.search(text):
        return InfoFocus.SIDE_EFFECTS
    if USAGE_RE.search(text):
        return InfoFocus.USAGE
    return InfoFocus.GENERAL


def _text(query: Query) -> str:
    return (query.text or "").lower()


@dataclass(frozen=True)
class IntentRule:
    name: str
    applies: Callable[[Query, SessionContext], bool]
    apply: Callable[[Query, SessionContext], Query]
    terminal: bool = False


@dataclass(frozen=True)
class Resolution:
    query: Query
    applied: tuple[str, ...] = ()
    reply: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.reply is not None


# patient_context_completion


def _patient_context_applies(query: Query, session: SessionContext) -> bool:
    return (
        query.intent is Intent.OTHER
        and bool(AGE_RE.search(query.text or ""))
        and bool((session.last_drug_name or "").strip())
    )


def _patient_context_apply(query: Query, session: SessionContext) -> Query:
    return query.model_copy(
        update={"intent": Intent.DOSAGE, "drug_name": session.last_drug_name.strip()}
    )


# out_of_scope


def _out_of_scope_applies(query: Query, session: SessionContext) -> bool:
    if query.intent is not Intent.OTHER:
        return False
    text = query.text or ""
    if is_out_of_scope(text):
        return True
    return not session.recent_drugs and is_greeting_or_gibberish(text)


def _unchanged(query: Query, session: SessionContext) -> Query:
    return query


# auto_intent


def _auto_intent_applies(query: Query, session: SessionContext) -> bool:
    if query.intent is not Intent.OTHER or not query.drug_name:
        return False
    text = _text(query)
    return any(
        p.search(text) for p in (ALTERNATIVES_RE, DOSAGE_RE, USAGE_RE, SIDE_EFFECTS_RE)
    )


def _auto_intent_apply(query: Query, session: SessionContext) -> Query:
    text = _text(query)
    if ALTERNATIVES_RE.search(text):
        intent = Intent.ALTERNATIVES
    elif DOSAGE_RE.search(text):
        intent = Intent.DOSAGE
    else:
        intent = Intent.DRUG_INFO
    return query.model_copy(update={"intent": intent})


# context_carry_forward


def _carry_forward_applies(query: Query, session: SessionContext) -> bool:
    if query.drug_name or not (session.last_drug_name or "").strip():
        return False
    text = _text(query)
    return bool(
        NEEDS_DRUG_RE.search(text)
        or BARE_STRENGTH_RE.match(text)
        or DOSAGE_RE.search(text)
        or SIDE_EFFECTS_RE.search(text)
        or USAGE_RE.search(text)
    )


def _carry_forward_apply(query: Query, session: SessionContext) -> Query:
    text = _text(query)
    update = {"drug_name": session.last_drug_name.strip()}
    if USAGE_RE.search(text) or SIDE_EFFECTS_RE.search(text):
        update["intent"] = Intent.DRUG_INFO
    elif re.search(r"\b(dosage|dose)\b", text) or BARE_STRENGTH_RE.match(text):
        update["intent"] = Intent.DOSAGE
    return query.model_copy(update=update)


# follow_up


def _follow_up_applies(query: Query, session: SessionContext) -> bool:
    return (
        query.intent is Intent.OTHER
        and bool(query.drug_name)
        and session.last_intent is not None
        and session.last_intent is not Intent.OTHER
        and bool(FOLLOW_UP_RE.search(query.text or ""))
    )


def _follow_up_apply(query: Query, session: SessionContext) -> Query:
    return query.model_copy(update={"intent": session.last_intent})


# strength_form_inference


def _strength_form_applies(query: Query, session: SessionContext) -> bool:
    if query.intent not in (Intent.OTHER, Intent.DRUG_INFO) or not query.drug_name:
        return False
    combined = f"{query.text or ''} {query.drug_name}"
    text = _text(query)
    return (
        bool(STRENGTH_RE.search(combined))
        and bool(FORM_RE.search(combined))
        and not USAGE_RE.search(text)
        and not SIDE_EFFECTS_RE.search(text)
    )


def _strength_form_apply(query: Query, session: SessionContext) -> Query:
    return query.model_copy(update={"intent": Intent.DOSAGE})


INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule("patient_context_completion", _patient_context_applies, _patient_context_apply),
    IntentRule("out_of_scope", _out_of_scope_applies, _unchanged, terminal=True),
    IntentRule("auto_intent", _auto_intent_applies, _auto_intent_apply),
    IntentRule("context_carry_forward", _carry_forward_applies, _carry_forward_apply),
    IntentRule("follow_up", _follow_up_applies, _follow_up_apply),
    IntentRule("strength_form_inference", _strength_form_applies, _strength_form_apply),
)


def resolve_query(
    query: Query,
    session: Optional[SessionContext] = None,
    rules: tuple[IntentRule, ...] = INTENT_RULES,
) -> Resolution:
    """Run the rule cascade and attach the information focus.

    Returns a Resolution whose ``reply`` is set when a terminal rule fired.
    """
    session = session or SessionContext.empty()
    applied: list[str] = []

    for rule in rules:
        if not rule.applies(query, session):
            continue
        applied.append(rule.name)
        query = rule.apply(query, session)
        if rule.terminal:
            logger.info("Query stopped by rule %s", rule.name)
            return Resolution(query=query, applied=tuple(applied), reply=OUT_OF_SCOPE_REPLY)

    query = query.model_copy(update={"focus": detect_focus(query.text or "", query.intent)})
    logger.debug(
        "Resolved intent=%s drug=%s via %s", query.intent.value, query.drug_name, applied
    )
    return Resolution(query=query, applied=tuple(applied))
