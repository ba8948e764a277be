from typing import Any, List, Optional
from litellm import completion
import logging
from comicgen.agents.infrastructure.resilience_agent import ResilienceAgent
from comicgen.core.errors import MalformedResponseError

logger = logging.getLogger(__name__)


class LLMInterface:
    def __init__(self, model_name: str = "bedrock/anthropic.claude-3-5-sonnet-20241022-v2:0",
                 max_tokens: int = 2500, temperature: float = 0.7, top_p: float = 1.0,
                 resilience: Optional[ResilienceAgent] = None, aws_region: Optional[str] = None):
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p
        self.aws_region = aws_region
        self.resilience = resilience or ResilienceAgent()

    @staticmethod
    def _extract_text(response: Any) -> str:
        """
        Returns the single top-level completion text.
        Raises MalformedResponseError when the envelope does not carry one.
        """
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, KeyError, TypeError):
            raise MalformedResponseError("LLM response did not contain expected content structure", payload=response)
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponseError("LLM response contained no text", payload=response)
        return content

    def generate_text(self, prompt: str, max_tokens: Optional[int] = None, temperature: Optional[float] = None,
                      stop: Optional[List[str]] = None, system_prompt: Optional[str] = None) -> str:
        """
        Single-turn completion through the retry wrapper.
        Only throttling errors are retried; a malformed envelope fails immediately.
        """
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        completion_kwargs = {
            "model": self.model_name,
            "messages": messages,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
            "top_p": self.top_p,
        }
        if stop:
            completion_kwargs["stop"] = stop
        if self.aws_region and self.model_name.startswith("bedrock/"):
            completion_kwargs["aws_region_name"] = self.aws_region

        attempt = 0

        def _call():
            nonlocal attempt
            attempt += 1
            logger.info(f"LLM Request (Attempt {attempt}) using {self.model_name}...")
            return completion(**completion_kwargs)

        response = self.resilience.call(_call)
        return self._extract_text(response)
