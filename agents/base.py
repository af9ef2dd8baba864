"""Base agent definition.

An agent is a plain record (role name, model identifier, system prompt, a
prompt-building function and an output schema) executed by the generic
run_agent() coroutine. There is no class hierarchy: the Observer, the
Skeptic and the batch enrichment agent are all AgentSpec values that differ
only in data.

Agents are deliberately "dumb" workers:
- They do not call other agents
- They do not store state between runs
- They do not persist anything; the trace is handed back to the caller
- build_prompt is a pure function of the input

All sequencing, caching, confidence adjustment and persistence lives in the
orchestrator, the clustering engine and the services.
"""

import logging
import pathlib
from dataclasses import dataclass, replace
from typing import Any, Callable

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from llm.base import LLMClient
from schemas.trace import AgentTrace
from utils.parse import LLMParseError, parse_llm_json

logger = logging.getLogger(__name__)

_PROMPT_DIR = pathlib.Path(__file__).parent.parent / "prompts"

# Default model identifiers. Fast model for high-volume triage, reasoning
# model for the deliberation chain. Overridable per AgentSpec via with_model().
FAST_MODEL = "google/gemini-2.5-flash"
REASONING_MODEL = "google/gemini-2.5-pro"


def load_prompt(name: str) -> str:
    """Read a system prompt from prompts/<name>.txt."""
    return (_PROMPT_DIR / f"{name}.txt").read_text(encoding="utf-8")


class AgentExecutionError(Exception):
    """Raised when an agent call produces no usable result.

    Covers transport failures, empty responses and responses that fail JSON
    parsing or schema validation. Carries the role and the raw response so
    callers can log it without unwrapping.

    Attributes:
        role: Role name of the agent that failed.
        raw: Raw model response, or None if the call itself failed.
    """

    def __init__(self, role: str, message: str, raw: str | None = None):
        super().__init__(f"[{role}] {message}")
        self.role = role
        self.raw = raw


@dataclass(frozen=True)
class AgentSpec:
    """Everything that distinguishes one agent from another.

    Attributes:
        role: Role name written into every trace ("Observer", "Skeptic", ...).
        model: Model identifier passed to LLMClient.complete().
        system_prompt: Static instructions for the role.
        build_prompt: Pure function from the agent's input to the user
            message. Same input, same prompt.
        output_schema: Pydantic model the JSON response is validated against.
    """

    role: str
    model: str
    system_prompt: str
    build_prompt: Callable[[Any], str]
    output_schema: type[BaseModel]

    def with_model(self, model: str) -> "AgentSpec":
        """Return a copy of this spec that calls a different model."""
        return replace(self, model=model)


@dataclass
class AgentRun:
    """What one agent call returns.

    A dataclass rather than a Pydantic model because it is an internal
    object: the result is already validated and the trace is the part that
    gets persisted.

    Attributes:
        result: Validated instance of spec.output_schema.
        trace: Audit record of the call, ready for persistence.
    """

    result: Any
    trace: AgentTrace


async def run_agent(
    spec: AgentSpec,
    llm: LLMClient,
    payload: Any,
    session_id: str = "",
) -> AgentRun:
    """Execute one agent call: build prompt, call the model, parse JSON.

    Args:
        spec: The agent to run.
        llm: Client used for the call. spec.model is passed per call.
        payload: Input handed to spec.build_prompt and recorded in the trace.
        session_id: Reasoning session this call belongs to, if any.

    Returns:
        AgentRun with the validated result and its trace.

    Raises:
        AgentExecutionError: If the model call raises, returns nothing, or
            returns something that doesn't parse into spec.output_schema.
            The caller decides whether to abort or substitute a default.
    """
    user_message = spec.build_prompt(payload)
    logger.debug("[%s] analyzing with %s...", spec.role, spec.model)

    try:
        raw = await llm.complete(
            system=spec.system_prompt,
            user=user_message,
            model=spec.model,
            json_mode=True,
        )
    except Exception as exc:
        logger.error("[%s] model call failed: %s", spec.role, exc)
        raise AgentExecutionError(spec.role, f"model call failed: {exc}") from exc

    try:
        result = parse_llm_json(raw, spec.output_schema)
    except LLMParseError as exc:
        logger.error("[%s] failed to parse LLM response: %s\nRaw: %s", spec.role, exc, exc.raw)
        raise AgentExecutionError(spec.role, str(exc), raw=exc.raw) from exc

    trace = AgentTrace(
        session_id=session_id,
        step=spec.role,
        input=to_jsonable_python(payload),
        output=result.model_dump(mode="json"),
        model=spec.model,
    )
    return AgentRun(result=result, trace=trace)
