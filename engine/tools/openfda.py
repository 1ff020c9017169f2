"""OpenFDA drug label provider."""

import logging
import re
from typing import Any, Optional

import httpx

from app.settings import settings
from engine.states.assistant_states import ClinicalRecord, InfoFocus
from engine.tools.http import fetch_json
from engine.tools.text_patterns import strip_forms, strip_strengths
from persistence.cache import ProviderCache

logger = logging.getLogger(__name__)

OPENFDA_CITATION = "https://open.fda.gov/apis/drug/label/"

_SIDE_EFFECT_WORDS = ("side effect", "adverse", "reaction")


def clean_search_name(drug_name: str) -> str:
    return strip_forms(strip_strengths(drug_name.lower()))


def _first(result: dict[str, Any], field: str) -> Optional[str]:
    values = result.get(field) or []
    if values and isinstance(values[0], str) and values[0].strip():
        return values[0]
    return None


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def extract_dosage(results: list[dict[str, Any]]) -> Optional[str]:
    """Label dosage text, reworded so it does not prescribe a specific unit count."""
    for result in results:
        text = _first(result, "dosage_and_administration")
        if not text:
            continue
        text = _squash(re.sub(r"Directions\s*", "", text, count=1, flags=re.IGNORECASE))
        text = re.sub(r"\b(gelcaps?|tablets?|capsules?|caplets?)\b", "dose", text, flags=re.IGNORECASE)
        text = re.sub(r"take\s+\d+\s+dose", "take the appropriate dose", text, flags=re.IGNORECASE)
        text = re.sub(r"\d+\s+dose\s+every", "the recommended dose every", text, flags=re.IGNORECASE)
        text = re.sub(
            r"more than \d+ dose",
            "more than the maximum recommended doses",
            text,
            flags=re.IGNORECASE,
        )
        return text
    return None


def extract_usage(results: list[dict[str, Any]]) -> Optional[str]:
    for result in results:
        text = _first(result, "indications_and_usage")
        if text:
            return _squash(re.sub(r"Uses\s*", "", text, count=1, flags=re.IGNORECASE))
        text = _first(result, "purpose")
        if text:
            return _squash(re.sub(r"Purpose\s*", "", text, count=1, flags=re.IGNORECASE))
    return None


def extract_warnings(results: list[dict[str, Any]]) -> Optional[str]:
    for result in results:
        text = _first(result, "warnings")
        if not text:
            continue
        sentences = [s.strip() for s in re.split(r"[.!?]+", text) if s.strip()]
        summary = ". ".join(sentences[:3])
        return summary + ("..." if len(sentences) > 3 else "")
    return None


def extract_side_effects(results: list[dict[str, Any]]) -> Optional[str]:
    for result in results:
        text = _first(result, "adverse_reactions")
        if text:
            return _squash(text)
        text = _first(result, "warnings")
        if text and any(w in text.lower() for w in _SIDE_EFFECT_WORDS):
            relevant = [
                s.strip()
                for s in re.split(r"[.!?]+", text)
                if any(w in s.lower() for w in _SIDE_EFFECT_WORDS)
            ]
            if relevant:
                return ". ".join(relevant[:2])
    return None


def extract_brand(results: list[dict[str, Any]]) -> Optional[str]:
    for result in results:
        brand = (result.get("openfda") or {}).get("brand_name")
        if isinstance(brand, list):
            brand = brand[0] if brand else None
        if brand:
            return brand
    return None


def record_from_labels(results: list[dict[str, Any]], focus: InfoFocus) -> ClinicalRecord:
    """Pick the label fields the question needs; warnings and brand always."""
    general = focus is InfoFocus.GENERAL
    return ClinicalRecord(
        dosage=extract_dosage(results) if general or focus is InfoFocus.DOSAGE else None,
        usage=extract_usage(results) if general or focus is InfoFocus.USAGE else None,
        side_effects=(
            extract_side_effects(results)
            if general or focus is InfoFocus.SIDE_EFFECTS
            else None
        ),
        warnings=extract_warnings(results),
        brand_us=extract_brand(results),
        citations=[OPENFDA_CITATION],
    )


class OpenFDALabelProvider:
    label = "OpenFDA"

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: Optional[ProviderCache] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.cache = cache or ProviderCache()
        self.base_url = (base_url or settings.OPENFDA_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.OPENFDA_TIMEOUT

    async def _search(self, name: str, limit: int = 5) -> list[dict[str, Any]]:
        url = f"{self.base_url}/drug/label.json"
        for search in (f'active_ingredient:"{name}"', f'openfda.generic_name:"{name}"'):
            data = await fetch_json(
                self.client, url, {"search": search, "limit": limit}, self.timeout
            )
            results = (data or {}).get("results") or []
            if results:
                logger.info("OpenFDA found %d labels for %s", len(results), search)
                return results
        return []

    async def lookup(self, drug_name: str, focus: InfoFocus = InfoFocus.GENERAL) -> ClinicalRecord:
        name = clean_search_name(drug_name)
        if not name:
            return ClinicalRecord()

        cache_key = f"{name}|{focus.value}"
        cached = await self.cache.get_model("openfda", cache_key, ClinicalRecord)
        if cached is not None:
            return cached

        results = await self._search(name)
        if not results:
            logger.info("OpenFDA has no label for %s", name)
            return ClinicalRecord()

        record = record_from_labels(results, focus)
        await self.cache.set_model("openfda", cache_key, record, settings.OPENFDA_CACHE_TTL)
        return record
