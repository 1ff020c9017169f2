"""MedlinePlus Connect provider (drug information by name)."""

import html
import logging
import re
from typing import Any, Optional

import httpx

from app.settings import settings
from engine.states.assistant_states import ClinicalRecord, InfoFocus
from engine.tools.http import fetch_json
from engine.tools.openfda import clean_search_name
from persistence.cache import ProviderCache

logger = logging.getLogger(__name__)

RXNORM_CODE_SYSTEM = "2.16.840.1.113883.6.88"

_TAG_RE = re.compile(r"<[^>]+>")


def strip_html(text: str) -> str:
    return re.sub(r"\s+", " ", html.unescape(_TAG_RE.sub(" ", text))).strip()


def _value(node: Any) -> Optional[str]:
    if isinstance(node, dict):
        node = node.get("_value")
    return node if isinstance(node, str) and node.strip() else None


def record_from_feed(data: Any) -> ClinicalRecord:
    """Summary text becomes usage, entry links become citations."""
    entries = ((data or {}).get("feed") or {}).get("entry") or []
    usage = None
    citations: list[str] = []
    for entry in entries:
        summary = _value(entry.get("summary"))
        if summary and usage is None:
            usage = strip_html(summary)
        for link in entry.get("link") or []:
            href = link.get("href") if isinstance(link, dict) else None
            if href and href not in citations:
                citations.append(href)
    if usage is None:
        return ClinicalRecord()
    return ClinicalRecord(usage=usage, citations=citations)


class MedlinePlusProvider:
    label = "MedlinePlus"

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: Optional[ProviderCache] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.cache = cache or ProviderCache()
        self.base_url = (base_url or settings.MEDLINEPLUS_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.MEDLINEPLUS_TIMEOUT

    async def lookup(self, drug_name: str, focus: InfoFocus = InfoFocus.GENERAL) -> ClinicalRecord:
        name = clean_search_name(drug_name)
        if not name:
            return ClinicalRecord()

        cached = await self.cache.get_model("medlineplus", name, ClinicalRecord)
        if cached is not None:
            return cached

        data = await fetch_json(
            self.client,
            f"{self.base_url}/service",
            {
                "mainSearchCriteria.v.cs": RXNORM_CODE_SYSTEM,
                "mainSearchCriteria.v.dn": name,
                "knowledgeResponseType": "application/json",
                "informationRecipient.languageCode.c": "en",
            },
            self.timeout,
        )
        record = record_from_feed(data)
        if record.is_empty():
            logger.info("MedlinePlus has nothing for %s", name)
            return record

        await self.cache.set_model("medlineplus", name, record, settings.MEDLINEPLUS_CACHE_TTL)
        return record
