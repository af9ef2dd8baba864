"""OpenRouter LLM client.

OpenRouter is a unified proxy that provides access to models from Google,
Anthropic and others through a single OpenAI-compatible API and one API key.
Switching models is just changing the model string; the rest of the code is
unchanged.

Required environment variable:
    OPENROUTER_API_KEY: Your OpenRouter API key. Add to .env and never commit.
"""

import os

import openai
from dotenv import load_dotenv

from llm.base import LLMClient

load_dotenv()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterClient(LLMClient):
    """LLMClient implementation backed by OpenRouter.

    Uses the openai SDK pointed at the OpenRouter base URL. The model passed
    at construction is only a default: agents pass their own model ID on
    every call.

    Example usage:
        llm = OpenRouterClient("google/gemini-2.5-flash")
        raw = await llm.complete(system=..., user=..., model="google/gemini-2.5-pro", json_mode=True)

    Attributes:
        model: Default OpenRouter model identifier.
        client: The underlying async OpenAI client configured for OpenRouter.
    """

    def __init__(self, model: str):
        """Initialize the client with a default model.

        Args:
            model: OpenRouter model ID string. No default; always be explicit
                about which model the client falls back to.

        Raises:
            KeyError: If OPENROUTER_API_KEY is not set in the environment
                or .env file. Fails immediately at construction rather than
                at the first API call.
        """
        self.model = model
        self.client = openai.AsyncOpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=os.environ["OPENROUTER_API_KEY"],
        )

    async def complete(
        self,
        system: str,
        user: str,
        *,
        model: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Send a prompt to the requested model via OpenRouter.

        Args:
            system: System prompt defining the agent's role and task.
            user: User-turn content: the signals and context to reason over.
            model: Per-call model override.
            json_mode: Request a strict JSON object response.

        Returns:
            The model's response as a plain string, or "" when the provider
            returned no content.

        Raises:
            openai.APIError: If the OpenRouter API returns an error response.
        """
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(
            model=model or self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            **kwargs,
        )
        return response.choices[0].message.content or ""
