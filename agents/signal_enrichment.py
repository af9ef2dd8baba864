"""Signal enrichment agents: fast triage run on every incoming signal.

Two specs share one output shape. The single agent rates one signal; the
batch agent rates a connector's whole poll in one call. Ingestion must never
fail because the model did, so enrich_batch() converts every failure into
conservative fallbacks instead of raising.
"""

import logging

from pydantic import BaseModel

from agents.base import FAST_MODEL, AgentExecutionError, AgentSpec, load_prompt, run_agent
from llm.base import LLMClient
from schemas.enrichment import EnrichmentInput, EnrichmentResult

logger = logging.getLogger(__name__)


class EnrichmentBatchInput(BaseModel):
    items: list[EnrichmentInput]


class EnrichmentBatchItem(EnrichmentResult):
    id: int | None = None


class EnrichmentBatch(BaseModel):
    results: list[EnrichmentBatchItem] = []


def build_prompt(payload: EnrichmentInput) -> str:
    return (
        f"Signal:\n[{payload.source}] {payload.text}\n\n"
        f"Location hint:\n"
        f"- lat: {payload.lat}\n"
        f"- lng: {payload.lng}\n"
        f"- city_hint: {payload.city_hint}"
    )


def build_batch_prompt(payload: EnrichmentBatchInput) -> str:
    blocks = [
        f"--- SIGNAL ID: {index} ---\n"
        f"SOURCE: {item.source}\n"
        f"TEXT: {item.text}\n"
        f"LOCATION HINT: lat:{item.lat}, lng:{item.lng}, city:{item.city_hint}"
        for index, item in enumerate(payload.items)
    ]
    return "Signals to analyze:\n\n" + "\n\n".join(blocks)


SIGNAL_ENRICHMENT = AgentSpec(
    role="SignalEnrichment",
    model=FAST_MODEL,
    system_prompt=load_prompt("signal_enrichment"),
    build_prompt=build_prompt,
    output_schema=EnrichmentResult,
)

SIGNAL_ENRICHMENT_BATCH = AgentSpec(
    role="SignalEnrichmentBatch",
    model=FAST_MODEL,
    system_prompt=load_prompt("signal_enrichment_batch"),
    build_prompt=build_batch_prompt,
    output_schema=EnrichmentBatch,
)


async def enrich_batch(
    llm: LLMClient,
    inputs: list[EnrichmentInput],
    spec: AgentSpec = SIGNAL_ENRICHMENT_BATCH,
) -> list[EnrichmentResult]:
    """Enrich a batch of signals, one result per input, in input order.

    Never raises for model failures. If the call fails or the reply doesn't
    parse, every input gets EnrichmentResult.fallback(). A reply with fewer
    results than inputs is padded with fallbacks; extra results are dropped.

    Args:
        llm: Client used for the batch call.
        inputs: Signals to enrich.
        spec: Batch agent spec. Overridable to swap the model.

    Returns:
        A list the same length as inputs.
    """
    if not inputs:
        return []

    logger.debug("[%s] analyzing batch of %d signals...", spec.role, len(inputs))
    try:
        run = await run_agent(spec, llm, EnrichmentBatchInput(items=inputs))
    except AgentExecutionError as exc:
        logger.error("Batch analysis failed for %d signals: %s", len(inputs), exc)
        return [EnrichmentResult.fallback(item) for item in inputs]

    ordered = _align(run.result.results, len(inputs))
    if len(run.result.results) < len(inputs):
        logger.warning(
            "Batch reply had %d results for %d signals; padding with fallbacks",
            len(run.result.results),
            len(inputs),
        )
    return [
        EnrichmentResult.model_validate(result.model_dump(exclude={"id"})) if result is not None
        else EnrichmentResult.fallback(item)
        for item, result in zip(inputs, ordered)
    ]


def _align(results: list[EnrichmentBatchItem], size: int) -> list[EnrichmentBatchItem | None]:
    """Place results by their echoed id when every id is usable, else by position."""
    ids = [r.id for r in results]
    if ids and all(i is not None and 0 <= i < size for i in ids) and len(set(ids)) == len(ids):
        slots: list[EnrichmentBatchItem | None] = [None] * size
        for result in results:
            slots[result.id] = result
        return slots
    positional: list[EnrichmentBatchItem | None] = list(results[:size])
    return positional + [None] * (size - len(positional))
