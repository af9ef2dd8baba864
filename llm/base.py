"""LLMClient abstract base class.

Defines the interface every LLM provider must implement. The reasoning
pipeline and the agents depend only on this interface, never on a concrete
provider. Swapping OpenRouter for MaiaRouter (or any other OpenAI-compatible
gateway) means writing a new class that satisfies this interface, with zero
changes to the rest of the system.
"""

from abc import ABC, abstractmethod


class LLMClient(ABC):
    """Abstract base class for all LLM provider clients.

    Agents never hold a client themselves. The agent executor receives an
    LLMClient and calls complete() with the agent's own model identifier, so
    one client instance can serve the fast enrichment model and the slower
    deliberation model side by side.

    To add a new provider, subclass LLMClient and implement complete().

    Attributes:
        model: Default model identifier used when complete() is called
            without an explicit model.
    """

    model: str = ""

    @abstractmethod
    async def complete(
        self,
        system: str,
        user: str,
        *,
        model: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Send a prompt to the LLM and return the response as plain text.

        Args:
            system: The system prompt that sets the agent's role and
                instructions (e.g. "You are an impartial observer...").
            user: The user-turn content, typically the serialized signals
                or the previous agent's output.
            model: Model identifier for this call. Falls back to the
                client's default model when None.
            json_mode: Ask the provider for a strict JSON object response
                (OpenAI-style ``response_format={"type": "json_object"}``).

        Returns:
            The model's response as a plain string. Callers never see
            the raw SDK response object. May be empty if the provider
            returned no content.

        Raises:
            NotImplementedError: If a subclass does not implement this method.
        """
        ...
