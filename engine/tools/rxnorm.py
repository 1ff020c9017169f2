"""RxNorm terminology lookups (approximate match plus canonical name)."""

import logging
import re
from typing import Optional

import httpx

from app.settings import settings
from engine.states.assistant_states import IdentityStep
from engine.tools.http import fetch_json
from persistence.cache import ProviderCache

logger = logging.getLogger(__name__)

_STRENGTH_TOKEN_RE = re.compile(r"\b\d{1,4}\s?(?:mg|mcg|g|ml)\b", re.IGNORECASE)
_RATIO_RE = re.compile(r"\b\d{1,4}\s?(?:mg|mcg|g)\s?/\s?\d{1,4}\s?(?:ml|mg)\b", re.IGNORECASE)


def strength_tokens(term: str) -> str:
    """Strength tokens of the input, e.g. "500 mg" or "250mg/5ml"."""
    tokens: list[str] = []
    for match in _RATIO_RE.findall(term) + _STRENGTH_TOKEN_RE.findall(term):
        token = re.sub(r"\s+", " ", match).lower()
        if not any(token in t for t in tokens):
            tokens.append(token)
    return " ".join(tokens)


def base_term(term: str) -> str:
    term = _RATIO_RE.sub("", term.lower())
    term = _STRENGTH_TOKEN_RE.sub("", term)
    term = re.sub(r"[^a-z0-9\s\-]", " ", term)
    return re.sub(r"\s+", " ", term).strip()


def _score(candidate: dict) -> float:
    try:
        return float(candidate.get("score") or 0)
    except (TypeError, ValueError):
        return 0.0


class RxNormClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: Optional[ProviderCache] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.cache = cache or ProviderCache()
        self.base_url = (base_url or settings.RXNORM_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.RXNORM_TIMEOUT

    async def _canonical_name(self, rxcui: str, provenance: list[str]) -> Optional[str]:
        url = f"{self.base_url}/rxcui/{rxcui}/property.json"
        provenance.append(f"{url}?propName=RxNorm%20Name")
        data = await fetch_json(self.client, url, {"propName": "RxNorm Name"}, self.timeout)
        concepts = ((data or {}).get("propConceptGroup") or {}).get("propConcept") or []
        value = concepts[0].get("propValue") if concepts else None
        return value.lower() if value else None

    async def map_to_generic(self, term: str) -> IdentityStep:
        """Map a local name to the US generic, keeping the input's strength."""
        base = base_term(term)
        if not base:
            return IdentityStep()

        cached = await self.cache.get_model("rxnorm", term, IdentityStep)
        if cached is not None:
            return cached

        url = f"{self.base_url}/approximateTerm.json"
        provenance = [f"{url}?term={base}&maxEntries=3"]
        data = await fetch_json(self.client, url, {"term": base, "maxEntries": 3}, self.timeout)
        candidates = ((data or {}).get("approximateGroup") or {}).get("candidate") or []
        if not candidates:
            return IdentityStep(provenance=provenance)

        top = max(candidates, key=_score)
        name = top.get("name")
        rxcui = top.get("rxcui")
        canonical = await self._canonical_name(rxcui, provenance) if rxcui else None
        mapped = (canonical or name or "").lower()
        if not mapped:
            return IdentityStep(provenance=provenance)

        strengths = strength_tokens(term)
        if strengths and strengths not in mapped:
            mapped = f"{mapped} {strengths}"

        step = IdentityStep(
            mapped_name=mapped,
            confidence=max(0.0, min(1.0, _score(top) / 100)),
            provenance=provenance,
        )
        logger.info("RxNorm mapped %r to %r (%.2f)", term, step.mapped_name, step.confidence)
        await self.cache.set_model("rxnorm", term, step, settings.RXNORM_CACHE_TTL)
        return step
