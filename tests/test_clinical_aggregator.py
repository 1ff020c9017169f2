import asyncio

import httpx

from engine.nodes.clinical_aggregator import ClinicalKnowledgeAggregator
from engine.states.assistant_states import ClinicalRecord, InfoFocus
from engine.tools.medlineplus import MedlinePlusProvider, record_from_feed, strip_html
from engine.tools.openfda import OpenFDALabelProvider, clean_search_name, extract_dosage
from tests.fakes import FakeProvider

OPENFDA_LABEL = {
    "results": [
        {
            "dosage_and_administration": [
                "Directions adults and children 12 years and over: take 2 tablets every "
                "4 to 6 hours. do not take more than 8 tablets in 24 hours"
            ],
            "indications_and_usage": ["Uses temporarily relieves minor aches and pains"],
            "warnings": [
                "Liver warning: severe liver damage may occur. Allergy alert: skin reactions. "
                "Do not use with other drugs containing acetaminophen. Ask a doctor."
            ],
            "openfda": {"brand_name": ["Tylenol"]},
        }
    ]
}

MEDLINEPLUS_FEED = {
    "feed": {
        "entry": [
            {
                "summary": {"_value": "<p>Acetaminophen is used to relieve mild pain &amp; fever.</p>"},
                "link": [{"href": "https://medlineplus.gov/druginfo/meds/a681004.html"}],
            }
        ]
    }
}


def run(coro):
    return asyncio.run(coro)


def test_primary_dosage_is_never_overwritten():
    primary = FakeProvider("OpenFDA", ClinicalRecord(dosage="primary dosage"))
    secondary = FakeProvider("MedlinePlus", ClinicalRecord(dosage="secondary", usage="u"))
    record, labels = run(ClinicalKnowledgeAggregator([primary, secondary]).aggregate("x"))
    assert record.dosage == "primary dosage"
    assert secondary.calls == []
    assert labels == ["OpenFDA"]


def test_secondary_consulted_when_primary_has_no_clinical_fields():
    primary = FakeProvider("OpenFDA", ClinicalRecord(warnings="label warning", brand_us="Tylenol"))
    secondary = FakeProvider("MedlinePlus", ClinicalRecord(usage="relieves pain"))
    record, labels = run(
        ClinicalKnowledgeAggregator([primary, secondary]).aggregate("x", InfoFocus.USAGE)
    )
    assert record.usage == "relieves pain"
    assert record.warnings == "label warning"
    assert labels == ["OpenFDA", "MedlinePlus"]
    assert secondary.calls == [("x", InfoFocus.USAGE)]


def test_provider_failure_falls_through():
    broken = FakeProvider("OpenFDA", error=httpx.ConnectTimeout("timed out"))
    secondary = FakeProvider("MedlinePlus", ClinicalRecord(usage="relieves pain"))
    record, labels = run(ClinicalKnowledgeAggregator([broken, secondary]).aggregate("x"))
    assert record.usage == "relieves pain"
    assert labels == ["MedlinePlus"]


def test_nothing_found_gives_empty_record():
    record, labels = run(ClinicalKnowledgeAggregator([FakeProvider("OpenFDA")]).aggregate("x"))
    assert record.is_empty()
    assert labels == []


def test_openfda_dosage_is_reworded():
    dosage = extract_dosage(OPENFDA_LABEL["results"])
    assert "take the appropriate dose" in dosage
    assert "more than the maximum recommended doses" in dosage
    assert "tablet" not in dosage.lower()


def test_clean_search_name_drops_strength_and_form():
    assert clean_search_name("Acetaminophen 500 mg Tablet") == "acetaminophen"


def test_openfda_provider_falls_back_to_generic_name_search():
    searches: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        search = request.url.params["search"]
        searches.append(search)
        if search.startswith("openfda.generic_name"):
            return httpx.Response(200, json=OPENFDA_LABEL)
        return httpx.Response(404, json={"error": {"code": "NOT_FOUND"}})

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = OpenFDALabelProvider(client, base_url="https://fda.test")
            return await provider.lookup("acetaminophen 500 mg", InfoFocus.DOSAGE)

    record = run(scenario())
    assert searches == [
        'active_ingredient:"acetaminophen"',
        'openfda.generic_name:"acetaminophen"',
    ]
    assert record.dosage
    assert record.usage is None
    assert record.brand_us == "Tylenol"
    assert record.warnings.startswith("Liver warning")


def test_openfda_outage_returns_empty_record():
    async def scenario():
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        async with httpx.AsyncClient(transport=transport) as client:
            return await OpenFDALabelProvider(client, base_url="https://fda.test").lookup("x")

    assert run(scenario()).is_empty()


def test_medlineplus_summary_becomes_usage():
    record = record_from_feed(MEDLINEPLUS_FEED)
    assert record.usage == "Acetaminophen is used to relieve mild pain & fever."
    assert record.citations == ["https://medlineplus.gov/druginfo/meds/a681004.html"]
    assert strip_html("<b>a</b>  b") == "a b"


def test_medlineplus_provider_queries_connect_service():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=MEDLINEPLUS_FEED)

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = MedlinePlusProvider(client, base_url="https://medline.test")
            return await provider.lookup("Acetaminophen 500 mg")

    record = run(scenario())
    assert record.usage.startswith("Acetaminophen is used")
    assert seen[0].url.path == "/service"
    assert seen[0].url.params["mainSearchCriteria.v.dn"] == "acetaminophen"


def test_medlineplus_bad_json_is_no_data():
    async def scenario():
        transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>"))
        async with httpx.AsyncClient(transport=transport) as client:
            return await MedlinePlusProvider(client, base_url="https://medline.test").lookup("x")

    assert run(scenario()).is_empty()
