#!/usr/bin/env python3
"""
LLM client for hint generation.
Talks to a locally hosted Ollama server over HTTP.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Generator, Dict

import httpx

from .config import get_config_value


@dataclass
class LLMResponse:
    """Response from the text generation endpoint"""
    content: str
    model: str
    provider: str
    usage: Optional[Dict[str, int]] = None


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients"""

    @abstractmethod
    def is_available(self) -> bool:
        """Check the endpoint can be reached"""
        pass

    @abstractmethod
    def generate(
        self,
        prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Create a completion"""
        pass

    @abstractmethod
    def stream(
        self,
        prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> Generator[str, None, None]:
        """Stream a completion token by token"""
        pass


class OllamaClient(BaseLLMClient):
    """Ollama /api/generate client"""

    DEFAULT_URL = "http://localhost:11434"
    DEFAULT_MODEL = "llama2"

    def __init__(
        self,
        base_url: str = None,
        model: str = None,
        timeout: float = 60.0,
        transport: httpx.BaseTransport = None,
    ):
        self.base_url = (base_url or self.DEFAULT_URL).rstrip('/')
        self.model = model or self.DEFAULT_MODEL
        self.provider = "ollama"
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    def is_available(self) -> bool:
        try:
            response = self.client.get("/api/tags")
        except httpx.HTTPError:
            return False
        return response.is_success

    def _payload(self, prompt: str, max_tokens: int, temperature: float, stream: bool) -> Dict:
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": stream,
            "options": {
                "num_predict": max_tokens,
                "temperature": temperature,
            },
        }

    def generate(
        self,
        prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> LLMResponse:
        response = self.client.post(
            "/api/generate",
            json=self._payload(prompt, max_tokens, temperature, stream=False),
        )
        response.raise_for_status()
        data = response.json()

        usage = None
        if "eval_count" in data:
            usage = {
                "input_tokens": data.get("prompt_eval_count", 0),
                "output_tokens": data["eval_count"],
            }

        return LLMResponse(
            content=data.get("response", ""),
            model=data.get("model", self.model),
            provider=self.provider,
            usage=usage,
        )

    def stream(
        self,
        prompt: str,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> Generator[str, None, None]:
        with self.client.stream(
            "POST",
            "/api/generate",
            json=self._payload(prompt, max_tokens, temperature, stream=True),
        ) as response:
            response.raise_for_status()
            # One JSON object per line
            for line in response.iter_lines():
                if not line.strip():
                    continue
                chunk = json.loads(line)
                text = chunk.get("response")
                if text:
                    yield text
                if chunk.get("done"):
                    break

    def close(self):
        self.client.close()


def create_llm_client(model: str = None, base_url: str = None) -> OllamaClient:
    """
    Create a client from explicit arguments or the Basecamp config.

    Args:
        model: Model name override. If None, uses ollama_model.
        base_url: Server URL override. If None, uses ollama_url.
    """
    return OllamaClient(
        base_url=base_url or get_config_value('ollama_url'),
        model=model or get_config_value('ollama_model'),
        timeout=float(get_config_value('hint_timeout')),
    )
