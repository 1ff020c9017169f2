from datetime import date
from typing import Optional

from engine.nodes.clinical_aggregator import ClinicalKnowledgeAggregator
from engine.nodes.composer import ResponseComposer
from engine.nodes.identity_chain import IdentityHints, IdentityResolutionChain
from engine.orchestrator import AssistantPipeline
from engine.states.assistant_states import (
    ClinicalRecord,
    DrugIdentity,
    IdentityStep,
    InfoFocus,
    ProductTier,
)
from persistence.models import InventoryRow

PARACETAMOL_DOSAGE = (
    "Adults and children 12 years and over: take 2 doses every 4 to 6 hours while "
    "symptoms last. Children under 12 years: ask a doctor."
)


class FakeInventory:
    def __init__(self, rows=(), alternatives=()):
        self.rows = list(rows)
        self.alternative_rows = list(alternatives)
        self.search_calls: list[str] = []
        self.alternative_calls: list[int] = []

    async def search(self, name: str, limit: int = 8) -> list[InventoryRow]:
        self.search_calls.append(name)
        return list(self.rows)

    async def alternatives(self, row, exclude, limit=10):
        self.alternative_calls.append(row.id)
        return [r for r in self.alternative_rows if r.id not in exclude]


class FakeStrategy:
    def __init__(self, name: str = "fake", step: Optional[IdentityStep] = None, error=None):
        self.name = name
        self.step = step
        self.error = error
        self.calls: list[tuple[str, IdentityHints, DrugIdentity]] = []

    async def resolve(self, raw_name, hints, current):
        self.calls.append((raw_name, hints, current))
        if self.error is not None:
            raise self.error
        return self.step


class FakeProvider:
    def __init__(self, label: str, record: Optional[ClinicalRecord] = None, error=None):
        self.label = label
        self.record = record or ClinicalRecord()
        self.error = error
        self.calls: list[tuple[str, InfoFocus]] = []

    async def lookup(self, drug_name, focus=InfoFocus.GENERAL):
        self.calls.append((drug_name, focus))
        if self.error is not None:
            raise self.error
        return self.record


def make_row(**overrides) -> InventoryRow:
    values = {
        "id": 1,
        "name": "Biogesic 500mg Tablet",
        "brand_name": "Biogesic",
        "generic_name": "Paracetamol",
        "dosage_form": "TABLET",
        "category_id": 3,
        "category_name": "Pain Relief",
        "stock": 120,
        "selling_price": 4.5,
        "expiry": date(2027, 6, 30),
        "unit": "tablet",
    }
    values.update(overrides)
    return InventoryRow(**values)


class PipelineKit:
    """A pipeline wired to fakes, with the fakes exposed for call counting."""

    def __init__(self, inventory=None, strategy=None, primary=None, secondary=None):
        self.inventory = inventory or FakeInventory()
        self.strategy = strategy or FakeStrategy(
            step=IdentityStep(
                mapped_name="acetaminophen 500 mg",
                confidence=0.9,
                provenance=["test mapping"],
            )
        )
        self.primary = primary or FakeProvider(
            "OpenFDA",
            ClinicalRecord(
                dosage=PARACETAMOL_DOSAGE,
                usage="Temporarily relieves minor aches and pains and reduces fever",
                warnings="Liver warning: severe liver damage may occur",
            ),
        )
        self.secondary = secondary or FakeProvider(
            "MedlinePlus", ClinicalRecord(usage="Used to relieve mild pain")
        )
        self.pipeline = AssistantPipeline(
            inventory=self.inventory,
            identity_chain=IdentityResolutionChain([self.strategy]),
            aggregator=ClinicalKnowledgeAggregator([self.primary, self.secondary]),
            composer=ResponseComposer(model=None, mode="template"),
            unknown_tier=ProductTier.PRESCRIPTION,
        )

    @property
    def external_calls(self) -> int:
        return len(self.strategy.calls) + len(self.primary.calls) + len(self.secondary.calls)
