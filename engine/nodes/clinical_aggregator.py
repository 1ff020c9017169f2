import logging
from typing import Protocol

from engine.states.assistant_states import ClinicalRecord, InfoFocus

logger = logging.getLogger(__name__)


class ClinicalProvider(Protocol):
    label: str

    async def lookup(self, drug_name: str, focus: InfoFocus = InfoFocus.GENERAL) -> ClinicalRecord: ...


class ClinicalKnowledgeAggregator:
    """Queries clinical providers in a fixed order and merges their records.

    A later provider is consulted only while nothing earlier has produced a
    clinical field (dosage, usage or side effects). Fields merge first
    non-empty wins, so the primary provider's dosage is never overwritten.
    """

    def __init__(self, providers: list[ClinicalProvider]):
        self.providers = providers

    async def aggregate(
        self, drug_name: str, focus: InfoFocus = InfoFocus.GENERAL
    ) -> tuple[ClinicalRecord, list[str]]:
        record = ClinicalRecord()
        labels: list[str] = []

        for provider in self.providers:
            if record.has_clinical_content():
                break
            try:
                found = await provider.lookup(drug_name, focus)
            except Exception as exc:
                logger.warning("%s lookup failed for %s: %s", provider.label, drug_name, exc)
                continue
            if found.is_empty():
                logger.info("%s returned nothing for %s", provider.label, drug_name)
                continue
            record = record.merge(found)
            labels.append(provider.label)

        return record, labels
