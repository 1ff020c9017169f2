import logging
import re
from typing import Optional

from pydantic import BaseModel
from tavily import AsyncTavilyClient

from app.settings import settings

logger = logging.getLogger(__name__)

# Trusted regulator and reference domains
TRUSTED_ADVISORY_DOMAINS = [
    "fda.gov.ph",  # FDA Philippines
    "doh.gov.ph",  # Department of Health (PH)
    "fda.gov",  # Food and Drug Administration
    "who.int",  # World Health Organization
    "nih.gov",  # National Institutes of Health
    "medlineplus.gov",  # MedlinePlus
    "cdc.gov",  # Centers for Disease Control
    "ema.europa.eu",  # European Medicines Agency
]

PH_REGULATOR_RE = re.compile(r"fda\.gov\.ph|doh\.gov\.ph", re.IGNORECASE)


class Advisory(BaseModel):
    title: str = ""
    url: str
    content: str = ""


class AdvisorySearch:
    """Recall and safety-advisory search restricted to trusted domains."""

    label = "Health Advisories"

    def __init__(self, client: Optional[AsyncTavilyClient] = None, max_results: int = 3):
        if client is None and settings.TAVILY_API_KEY:
            client = AsyncTavilyClient(api_key=settings.TAVILY_API_KEY)
        self.client = client
        self.max_results = max_results

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def search(self, drug_name: str) -> list[Advisory]:
        if self.client is None:
            return []
        query = f"{drug_name} drug recall OR safety advisory"
        try:
            response = await self.client.search(
                query=query,
                search_depth="basic",
                max_results=self.max_results,
                include_domains=TRUSTED_ADVISORY_DOMAINS,
                timeout=settings.ADVISORY_TIMEOUT,
            )
        except Exception as exc:
            logger.warning("Advisory search failed for %s: %s", drug_name, exc)
            return []

        return [
            Advisory(
                title=r.get("title", ""),
                url=r["url"],
                content=r.get("content", ""),
            )
            for r in response.get("results", [])
            if r.get("url")
        ]


def advisory_labels(advisories: list[Advisory]) -> list[str]:
    if not advisories:
        return []
    labels = [AdvisorySearch.label]
    if any(PH_REGULATOR_RE.search(a.url) for a in advisories):
        labels.append("FDA Philippines")
    return labels
