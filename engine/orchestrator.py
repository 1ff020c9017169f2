import logging
import re
from typing import Literal, Optional

import httpx
from dotenv import load_dotenv
from langgraph.graph import END, START, StateGraph
from langgraph.types import Command

from app.settings import settings
from core.domain.policy import (
    non_medical_only,
    not_in_inventory,
    prescription_refusal,
    with_sources,
)
from engine.llm.models import ModelManager
from engine.nodes.classifier import classify_product, has_medical_form, matches_known_drug
from engine.nodes.clinical_aggregator import ClinicalKnowledgeAggregator
from engine.nodes.composer import CompositionInput, ResponseComposer, suggest_session_context
from engine.nodes.identity_chain import (
    MIMS_LABEL,
    AIMappingStrategy,
    IdentityHints,
    IdentityResolutionChain,
    RxNormStrategy,
    with_web_search_link,
)
from engine.nodes.query_resolver import OUT_OF_SCOPE_REPLY, resolve_query
from engine.nodes.safety_gate import (
    redact,
    requests_clinical_content,
    screen,
    unknown_medical_tier,
)
from engine.states.assistant_states import (
    AssistantState,
    InfoFocus,
    InputState,
    Intent,
    OutputState,
    ProductTier,
    Query,
    ResponseEnvelope,
    SessionContext,
)
from engine.tools.advisories import AdvisorySearch, advisory_labels
from engine.tools.medlineplus import MedlinePlusProvider
from engine.tools.openfda import OpenFDALabelProvider
from engine.tools.rxnorm import RxNormClient
from engine.tools.text_patterns import strip_strengths
from persistence.cache import ProviderCache
from persistence.models import InventoryRow
from persistence.repositories import InventoryLookup, get_inventory

load_dotenv()

logger = logging.getLogger(__name__)

_PHARMACY_TERMS_RE = re.compile(
    r"\b(tablet|capsule|syrup|suspension|injection|cream|ointment|drops|medicine"
    r"|medication|drug|prescription|otc|generic|brand|mg|ml|mcg|dosage|dose)\b",
    re.IGNORECASE,
)


def _inventory_summary(rows: list[InventoryRow]) -> str:
    if not rows:
        return ""
    lines = []
    for row in rows[:3]:
        price = f"₱{row.selling_price:.2f}" if row.selling_price is not None else "N/A"
        expiry = row.expiry.isoformat() if row.expiry else "N/A"
        name = strip_strengths(row.display_name)
        lines.append(f"{name} - {row.stock} units available at {price} each (expiry: {expiry})")
    return "📦 Inventory: " + ".\n".join(lines) + "."


def wants_external(query: Query) -> bool:
    return (
        "external_db" in query.sources
        or query.intent is Intent.DOSAGE
        or query.focus in (InfoFocus.USAGE, InfoFocus.SIDE_EFFECTS)
    )


class AssistantPipeline:
    """Request-scoped clinical query pipeline.

    resolve_query -> screen_request -> lookup_inventory -> resolve_identity
    -> aggregate_clinical -> compose. Any step may end the run with a fixed
    response; nothing is kept between runs.
    """

    def __init__(
        self,
        inventory: InventoryLookup,
        identity_chain: IdentityResolutionChain,
        aggregator: ClinicalKnowledgeAggregator,
        composer: ResponseComposer,
        advisories: Optional[AdvisorySearch] = None,
        unknown_tier: Optional[ProductTier] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.inventory = inventory
        self.identity_chain = identity_chain
        self.aggregator = aggregator
        self.composer = composer
        self.advisories = advisories
        self.unknown_tier = unknown_tier or unknown_medical_tier()
        self.http_client = http_client
        self.graph = self._build_graph()

    def _build_graph(self):
        builder = StateGraph(AssistantState, input_schema=InputState, output_schema=OutputState)

        builder.add_node("resolve_query", self.resolve_query)
        builder.add_node("screen_request", self.screen_request)
        builder.add_node("lookup_inventory", self.lookup_inventory)
        builder.add_node("resolve_identity", self.resolve_identity)
        builder.add_node("aggregate_clinical", self.aggregate_clinical)
        builder.add_node("compose", self.compose)

        builder.add_edge(START, "resolve_query")
        builder.add_edge("compose", END)

        return builder.compile()

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _finish(
        self,
        state: AssistantState,
        text: str,
        sources: list[str],
        tier: Optional[ProductTier] = None,
        suggest: bool = True,
    ) -> Command:
        envelope = ResponseEnvelope(
            text=with_sources(text, sources),
            sources=sources,
            suggested_session_context=(
                suggest_session_context(state["query"], state["session"], tier)
                if suggest else None
            ),
        )
        return Command(goto=END, update={"envelope": envelope})

    async def resolve_query(self, state: AssistantState) -> Command[Literal[END, "screen_request"]]:
        resolution = resolve_query(state["query"], state["session"])
        if resolution.is_terminal:
            return self._finish(
                state, resolution.reply, [settings.system_source], suggest=False
            )
        return Command(goto="screen_request", update={"query": resolution.query})

    async def screen_request(
        self, state: AssistantState
    ) -> Command[Literal[END, "lookup_inventory"]]:
        query = state["query"]
        outcome = screen(query, state["session"], default_tier=self.unknown_tier)
        if outcome.blocked:
            logger.info("Request stopped at safety gate: %s", outcome.reason)
            return self._finish(state, outcome.reply, list(outcome.sources), tier=outcome.tier)

        update = {"tier": outcome.tier} if outcome.tier else {}
        return Command(goto="lookup_inventory", update=update)

    async def lookup_inventory(
        self, state: AssistantState
    ) -> Command[Literal[END, "resolve_identity", "compose"]]:
        query = state["query"]
        clinical = requests_clinical_content(query)
        next_step = "resolve_identity" if wants_external(query) and query.drug_name else "compose"

        if not query.drug_name:
            return Command(goto=next_step, update={"inventory": []})

        rows = await self.inventory.search(query.drug_name)
        labels = [settings.inventory_source]

        if not rows:
            if clinical:
                return Command(goto=next_step, update={"inventory": []})
            if _PHARMACY_TERMS_RE.search(query.text or "") or matches_known_drug(query.drug_name):
                return self._finish(state, not_in_inventory(query.drug_name), labels)
            return self._finish(state, OUT_OF_SCOPE_REPLY, [settings.system_source], suggest=False)

        hit = rows[0]
        tier = classify_product(
            hit.name,
            hit.generic_name,
            hit.dosage_form,
            hit.category_name,
            assume_medical=clinical and not has_medical_form(hit.dosage_form),
            default=self.unknown_tier,
        )
        logger.info("Inventory evidence classifies %s as %s", hit.name, tier.value)

        if tier is ProductTier.NON_MEDICAL and query.intent not in (
            Intent.STOCK_CHECK,
            Intent.ALTERNATIVES,
        ):
            return self._finish(state, non_medical_only(hit.name), labels, tier=tier)

        if tier is ProductTier.PRESCRIPTION and query.intent in (Intent.DOSAGE, Intent.DRUG_INFO):
            text = prescription_refusal(
                query.drug_name, clinical=True, inventory_note=_inventory_summary(rows)
            )
            return self._finish(state, text, labels, tier=tier)

        update = {"inventory": rows, "tier": tier, "source_labels": labels}
        if query.intent is Intent.ALTERNATIVES:
            update["alternatives"] = await self.inventory.alternatives(hit, {r.id for r in rows})
        return Command(goto=next_step, update=update)

    async def resolve_identity(self, state: AssistantState) -> Command[Literal["aggregate_clinical"]]:
        query = state["query"]
        rows = state.get("inventory") or []
        hints = IdentityHints()
        if len(rows) == 1:
            hints = IdentityHints(brand_name=rows[0].brand_name, generic_name=rows[0].generic_name)
        elif rows:
            hints = IdentityHints(brand_name=rows[0].brand_name)

        identity, labels = await self.identity_chain.resolve(query.drug_name, hints)
        return Command(
            goto="aggregate_clinical",
            update={"identity": identity, "source_labels": labels},
        )

    async def aggregate_clinical(self, state: AssistantState) -> Command[Literal["compose"]]:
        query = state["query"]
        identity = state["identity"]
        record, labels = await self.aggregator.aggregate(identity.search_name, query.focus)
        update = {}
        if not (record.usage or record.dosage or record.warnings) and MIMS_LABEL not in (
            state.get("source_labels") or []
        ):
            update["identity"] = with_web_search_link(identity)
            labels = labels + [MIMS_LABEL]
        record = redact(record, state.get("tier"))

        advisories = []
        if self.advisories is not None and "web_search" in query.sources:
            advisories = await self.advisories.search(identity.search_name)
            labels = labels + advisory_labels(advisories)

        return Command(
            goto="compose",
            update={**update, "record": record, "advisories": advisories, "source_labels": labels},
        )

    async def compose(self, state: AssistantState) -> dict:
        query = state["query"]
        labels = state.get("source_labels") or []
        consulted = []
        if "identity" in state:
            consulted = [p.label for p in self.aggregator.providers]
            if MIMS_LABEL in labels:
                consulted.append(MIMS_LABEL)
        envelope = await self.composer.compose(
            CompositionInput(
                query=query,
                session=state["session"],
                tier=state.get("tier"),
                products=state.get("inventory") or [],
                alternatives=state.get("alternatives") or [],
                record=state.get("record"),
                advisories=state.get("advisories") or [],
                sources=labels or [settings.system_source],
                consulted=consulted,
            )
        )
        return {"envelope": envelope}

    # ------------------------------------------------------------------

    async def run(self, query: Query, session: Optional[SessionContext] = None) -> ResponseEnvelope:
        result = await self.graph.ainvoke(
            {"query": query, "session": session or SessionContext.empty()}
        )
        return result["envelope"]

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()


def build_default_pipeline() -> AssistantPipeline:
    """Wire the pipeline from settings."""
    http_client = httpx.AsyncClient(follow_redirects=True)
    cache = ProviderCache.from_settings()
    model = ModelManager.get_chat_model()

    identity_chain = IdentityResolutionChain(
        [AIMappingStrategy(model), RxNormStrategy(RxNormClient(http_client, cache))]
    )
    aggregator = ClinicalKnowledgeAggregator(
        [OpenFDALabelProvider(http_client, cache), MedlinePlusProvider(http_client, cache)]
    )
    advisories = AdvisorySearch()

    return AssistantPipeline(
        inventory=get_inventory(),
        identity_chain=identity_chain,
        aggregator=aggregator,
        composer=ResponseComposer(model=model),
        advisories=advisories if advisories.enabled else None,
        http_client=http_client,
    )
