"""MaiaRouter LLM client.

Required environment variable:
    MAIA_API_KEY: Your MaiaRouter API key. Add to .env and never commit.
"""

import os

import openai
from dotenv import load_dotenv

from llm.base import LLMClient

load_dotenv()

MAIA_BASE_URL = "https://api.maiarouter.ai/v1"


class MaiaClient(LLMClient):
    """LLMClient implementation backed by the MaiaRouter gateway."""

    def __init__(self, model: str):
        """Initialize the client for a default MaiaRouter-hosted model.

        Args:
            model: MaiaRouter model ID string (e.g. "maia/gemini-2.5-flash").

        Raises:
            KeyError: If MAIA_API_KEY is not set in the environment.
        """
        self.model = model
        self.client = openai.AsyncOpenAI(
            base_url=MAIA_BASE_URL,
            api_key=os.environ["MAIA_API_KEY"],
        )

    async def complete(
        self,
        system: str,
        user: str,
        *,
        model: str | None = None,
        json_mode: bool = False,
    ) -> str:
        """Send a prompt to the requested model via MaiaRouter."""
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
