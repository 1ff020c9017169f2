import re

from app.settings import settings
from core.domain.policy import MISSING_DRUG_MESSAGE
from engine.nodes.safety_gate import (
    check_completeness,
    check_interactions,
    redact,
    requests_clinical_content,
    screen,
)
from engine.states.assistant_states import (
    ClinicalRecord,
    InfoFocus,
    Intent,
    ProductTier,
    Query,
    SessionContext,
)

ADULT = SessionContext(patient_context="adult")


def dosage_query(drug, text=""):
    return Query(text=text, intent=Intent.DOSAGE, drug_name=drug, focus=InfoFocus.DOSAGE)


def test_dosage_without_drug_asks_for_it():
    outcome = screen(dosage_query(None, "what is the dosage"), SessionContext())
    assert outcome.blocked
    assert outcome.reply == MISSING_DRUG_MESSAGE
    assert outcome.sources == (settings.system_source,)


def test_prescription_dosage_is_refused():
    outcome = screen(dosage_query("Amoxicillin", "dosage for Amoxicillin"), SessionContext())
    assert outcome.blocked
    assert outcome.reason == "prescription"
    assert outcome.tier is ProductTier.PRESCRIPTION
    assert "prescription-only" in outcome.reply
    assert not re.search(r"\d+\s?(mg|ml)", outcome.reply)
    assert "every" not in outcome.reply.lower()
    assert outcome.sources == (settings.clinical_source, "FDA Guidelines")


def test_unknown_drug_defaults_to_prescription_for_clinical_questions():
    outcome = screen(dosage_query("Zzyxol 10mg tablet", "for adult"), ADULT)
    assert outcome.reason == "prescription"


def test_prescription_usage_question_is_refused_as_clinical():
    query = Query(
        text="what is Losartan used for",
        intent=Intent.DRUG_INFO,
        drug_name="Losartan",
        focus=InfoFocus.USAGE,
    )
    outcome = screen(query, SessionContext())
    assert outcome.blocked
    assert "clinical information" in outcome.reply


def test_general_drug_info_is_not_gated():
    query = Query(text="tell me about Losartan", intent=Intent.DRUG_INFO, drug_name="Losartan")
    assert not requests_clinical_content(query)
    assert not screen(query, SessionContext()).blocked


def test_interaction_alert_for_aspirin_after_warfarin():
    session = SessionContext(recent_drugs=("warfarin",), patient_context="adult")
    outcome = screen(dosage_query("aspirin"), session)
    assert outcome.blocked
    assert outcome.reason == "interaction"
    assert "CLINICAL ALERT" in outcome.reply
    assert "increased bleeding risk" in outcome.reply
    assert "warfarin" in outcome.reply
    assert outcome.sources == (settings.clinical_source,)


def test_interaction_check_matches_substrings():
    found = check_interactions("Aspirin 80 mg", ("Warfarin 5 mg tablet",))
    assert found is not None
    pair, matched = found
    assert pair.drugs == ("warfarin", "aspirin")
    assert matched == ["warfarin"]


def test_same_drug_is_not_an_interaction():
    assert check_interactions("paracetamol 500mg", ("Paracetamol 500mg tablet",)) is None
    assert check_interactions("aspirin", ()) is None


def test_completeness_asks_form_then_strength_then_patient():
    assert "dosage form" in check_completeness(dosage_query("Paracetamol"), SessionContext())
    assert "strength" in check_completeness(
        dosage_query("Paracetamol", "Paracetamol tablet"), SessionContext()
    )
    assert "adult, elderly" in check_completeness(
        dosage_query("Paracetamol", "Paracetamol 500mg tablet"), SessionContext()
    )
    assert (
        check_completeness(dosage_query("Paracetamol", "Paracetamol 500mg tablet for adult"), SessionContext())
        is None
    )


def test_completeness_uses_remembered_drug_and_patient():
    session = SessionContext(last_drug_name="Paracetamol 500mg tablet", patient_context="child")
    assert check_completeness(dosage_query("ibuprofen", "how about ibuprofen?"), session) is None


def test_complete_otc_dosage_passes():
    query = dosage_query("Paracetamol 500 mg", "Paracetamol 500mg tablet for adult dosage")
    outcome = screen(query, SessionContext())
    assert not outcome.blocked
    assert outcome.tier is ProductTier.OTC


def test_unknown_tier_setting_can_relax_default(monkeypatch):
    monkeypatch.setattr(settings, "UNKNOWN_MEDICAL_TIER", "otc")
    outcome = screen(dosage_query("Zzyxol 10mg tablet", "for adult"), ADULT)
    assert outcome.reason != "prescription"


def test_redact_strips_clinical_fields_for_prescription():
    record = ClinicalRecord(
        dosage="500 mg every 8 hours",
        usage="Bacterial infections",
        side_effects="Diarrhoea",
        warnings="Allergy",
        brand_us="Amoxil",
    )
    redacted = redact(record, ProductTier.PRESCRIPTION)
    assert redacted.dosage is None
    assert redacted.usage is None
    assert redacted.side_effects is None
    assert redacted.warnings is None
    assert redacted.brand_us == "Amoxil"
    assert redact(record, ProductTier.OTC) is record
