"""Chat text generation via OpenRouter.

Shared by the HyDE rewrite, the step-back note and answer synthesis. Each
use supplies its own system prompt; the generator only carries the model
and sampling settings.
"""

from typing import Optional

from skincare_rag.config import GENERATION_MODEL
from skincare_rag.shared.openrouter_client import call_chat_completion


class OpenRouterTextGenerator:
    """TextGenerator backed by OpenRouter chat completions."""

    def __init__(
        self,
        model: str = GENERATION_MODEL,
        temperature: float = 0.3,
        max_tokens: int = 1024,
        api_key: Optional[str] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return call_chat_completion(
            messages=messages,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            api_key=self.api_key,
        )
