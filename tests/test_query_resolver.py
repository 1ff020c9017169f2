import pytest

from engine.nodes.intent_extraction import heuristic_extraction
from engine.nodes.query_resolver import OUT_OF_SCOPE_REPLY, resolve_query
from engine.states.assistant_states import InfoFocus, Intent, Query, SessionContext


def resolve_text(text, session=None):
    return resolve_query(heuristic_extraction(text), session)


def test_greeting_is_out_of_scope():
    resolution = resolve_text("hello")
    assert resolution.is_terminal
    assert resolution.reply == OUT_OF_SCOPE_REPLY
    assert resolution.applied == ("out_of_scope",)


@pytest.mark.parametrize(
    "text", ["what's the weather today", "should i see a doctor", "good morning"]
)
def test_off_topic_text_is_out_of_scope(text):
    assert resolve_text(text).is_terminal


def test_pharmacy_keyword_keeps_query_in_scope():
    assert not resolve_text("do we have paracetamol in stock").is_terminal


def test_follow_up_inherits_previous_intent():
    session = SessionContext(
        last_drug_name="Paracetamol 500 mg tablet",
        last_intent=Intent.DOSAGE,
        recent_drugs=("Paracetamol 500 mg tablet",),
    )
    resolution = resolve_text("how about ibuprofen?", session)
    assert "follow_up" in resolution.applied
    assert resolution.query.intent is Intent.DOSAGE
    assert resolution.query.drug_name == "ibuprofen"
    assert resolution.query.focus is InfoFocus.DOSAGE


def test_follow_up_needs_a_previous_intent():
    resolution = resolve_text("how about ibuprofen?", SessionContext())
    assert "follow_up" not in resolution.applied
    assert resolution.query.intent is Intent.OTHER


def test_patient_context_completes_pending_dosage_question():
    session = SessionContext(last_drug_name="Paracetamol 500mg tablet", last_intent=Intent.DOSAGE)
    resolution = resolve_text("for adult", session)
    assert resolution.applied[0] == "patient_context_completion"
    assert resolution.query.intent is Intent.DOSAGE
    assert resolution.query.drug_name == "Paracetamol 500mg tablet"


def test_bare_strength_carries_drug_forward():
    session = SessionContext(last_drug_name="Paracetamol", recent_drugs=("Paracetamol",))
    resolution = resolve_text("500mg tablet", session)
    assert "context_carry_forward" in resolution.applied
    assert resolution.query.drug_name == "Paracetamol"
    assert resolution.query.intent is Intent.DOSAGE


def test_pronoun_question_carries_drug_forward_as_drug_info():
    session = SessionContext(last_drug_name="Biogesic", last_intent=Intent.STOCK_CHECK)
    resolution = resolve_text("what are the side effects of it", session)
    assert resolution.query.drug_name == "Biogesic"
    assert resolution.query.intent is Intent.DRUG_INFO
    assert resolution.query.focus is InfoFocus.SIDE_EFFECTS


def test_auto_intent_detects_alternatives():
    query = Query(text="any alternatives to Biogesic", drug_name="Biogesic")
    resolution = resolve_query(query)
    assert resolution.query.intent is Intent.ALTERNATIVES


def test_strength_and_form_imply_dosage():
    query = Query(text="Biogesic 500mg tablet", drug_name="Biogesic 500 mg")
    resolution = resolve_query(query)
    assert "strength_form_inference" in resolution.applied
    assert resolution.query.intent is Intent.DOSAGE


def test_usage_question_sets_focus():
    query = Query(text="what is Biogesic used for", drug_name="Biogesic", intent=Intent.DRUG_INFO)
    assert resolve_query(query).query.focus is InfoFocus.USAGE


@pytest.mark.parametrize(
    "text, session",
    [
        ("how about ibuprofen?", SessionContext(last_drug_name="Biogesic", last_intent=Intent.DOSAGE)),
        ("500mg tablet", SessionContext(last_drug_name="Paracetamol")),
        ("Paracetamol 500mg tablet for adult dosage", SessionContext()),
        ("any alternatives to Biogesic", SessionContext()),
        ("for adult", SessionContext(last_drug_name="Biogesic 500mg tablet")),
    ],
)
def test_resolution_is_idempotent(text, session):
    once = resolve_text(text, session).query
    twice = resolve_query(once, session).query
    assert (twice.intent, twice.drug_name) == (once.intent, once.drug_name)
