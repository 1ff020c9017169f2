import asyncio

import httpx

from engine.nodes.identity_chain import (
    MIMS_LABEL,
    AIMappingStrategy,
    IdentityHints,
    IdentityResolutionChain,
    RxNormStrategy,
)
from engine.states.assistant_states import DrugIdentity, IdentityStep
from engine.tools.rxnorm import RxNormClient, base_term, strength_tokens
from tests.fakes import FakeStrategy


def run(coro):
    return asyncio.run(coro)


def test_chain_stops_at_first_confident_mapping():
    first = FakeStrategy("ai", IdentityStep(mapped_name="acetaminophen", confidence=0.8))
    second = FakeStrategy("rxnorm", IdentityStep(mapped_name="other", confidence=0.9))
    identity, labels = run(
        IdentityResolutionChain([first, second], 0.5, 0.4).resolve("Biogesic")
    )
    assert identity.mapped_name == "acetaminophen"
    assert identity.confidence == 0.8
    assert second.calls == []
    assert labels == []


def test_later_strategy_sees_earlier_mapping():
    first = FakeStrategy("ai", IdentityStep(mapped_name="acetaminophen", confidence=0.3))
    second = FakeStrategy("rxnorm", IdentityStep(mapped_name="acetaminophen 500 mg", confidence=0.7))
    identity, _ = run(IdentityResolutionChain([first, second], 0.5, 0.4).resolve("Biogesic"))
    assert second.calls[0][2].mapped_name == "acetaminophen"
    assert identity.mapped_name == "acetaminophen 500 mg"


def test_low_confidence_adds_mims_link():
    weak = FakeStrategy("rxnorm", IdentityStep(mapped_name="guess", confidence=0.2))
    identity, labels = run(IdentityResolutionChain([weak], 0.5, 0.4).resolve("Bio Flu"))
    assert labels == [MIMS_LABEL]
    assert any("mims.com" in p and "Bio+Flu" in p for p in identity.provenance)
    assert identity.search_name == "guess"


def test_failing_strategy_is_skipped():
    broken = FakeStrategy("ai", error=RuntimeError("model down"))
    working = FakeStrategy("rxnorm", IdentityStep(mapped_name="ibuprofen", confidence=0.9))
    identity, _ = run(IdentityResolutionChain([broken, working], 0.5, 0.4).resolve("Advil"))
    assert identity.mapped_name == "ibuprofen"


def test_unresolved_name_falls_back_to_raw_name():
    identity, labels = run(IdentityResolutionChain([FakeStrategy()], 0.5, 0.4).resolve("Zzyxol"))
    assert identity.mapped_name is None
    assert identity.search_name == "Zzyxol"
    assert labels == [MIMS_LABEL]


def test_ai_mapping_without_model_contributes_nothing():
    strategy = AIMappingStrategy(model=None)
    assert run(strategy.resolve("Biogesic", IdentityHints(), None)) is None


def test_strength_helpers():
    assert strength_tokens("Biogesic 500mg") == "500mg"
    assert strength_tokens("Amoxil 250mg/5ml suspension") == "250mg/5ml"
    assert base_term("Biogesic 500 mg") == "biogesic"


def rxnorm_transport(seen):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if request.url.path.endswith("/approximateTerm.json"):
            return httpx.Response(
                200,
                json={
                    "approximateGroup": {
                        "candidate": [
                            {"rxcui": "161", "score": "87.5", "name": "Acetaminophen"},
                            {"rxcui": "999", "score": "40", "name": "Other"},
                        ]
                    }
                },
            )
        if request.url.path.endswith("/rxcui/161/property.json"):
            return httpx.Response(
                200, json={"propConceptGroup": {"propConcept": [{"propValue": "Acetaminophen"}]}}
            )
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def test_rxnorm_maps_local_name_and_keeps_strength():
    seen: list[str] = []

    async def scenario():
        async with httpx.AsyncClient(transport=rxnorm_transport(seen)) as client:
            rxnorm = RxNormClient(client, base_url="https://rxnav.test/REST")
            return await RxNormStrategy(rxnorm).resolve(
                "Biogesic 500mg",
                IdentityHints(generic_name="Paracetamol 500mg"),
                DrugIdentity(raw_name="Biogesic 500mg"),
            )

    step = run(scenario())
    assert step.mapped_name == "acetaminophen 500mg"
    assert step.confidence == 0.875
    assert seen == ["/REST/approximateTerm.json", "/REST/rxcui/161/property.json"]


def test_rxnorm_outage_gives_no_mapping():
    async def scenario():
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        async with httpx.AsyncClient(transport=transport) as client:
            return await RxNormClient(client, base_url="https://rxnav.test/REST").map_to_generic(
                "Biogesic"
            )

    step = run(scenario())
    assert step.mapped_name is None
    assert step.confidence == 0.0
