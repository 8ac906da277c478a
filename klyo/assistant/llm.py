"""
Text-generation service interface.

``ScheduleLLM`` has one method per pipeline stage. Each returns a typed
result or raises an ``LLMError`` subclass, which keeps the fallback logic
in ``stages`` independent of the transport and lets tests replace the
whole service with a mock.

``ChatCompletionsLLM`` is the HTTP implementation: one POST per call to an
OpenAI-compatible ``/chat/completions`` endpoint (Groq by default).
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx
from loguru import logger

from . import prompts
from .config import LLMConfig
from .errors import (
    ConfigurationError, EmptyCompletionError, LLMTransportError,
    MalformedResponseError
)
from .resilience import RetryPolicy


@dataclass
class Critique:
    """Quality judgement of a draft answer."""
    score: float
    critique: str


class ScheduleLLM(ABC):
    """Remote model calls used by the question-answering pipeline."""

    @abstractmethod
    async def expand(self, question: str, limit: int) -> List[str]:
        """Alternate phrasings of ``question`` (abbreviations decoded, typos fixed)."""

    @abstractmethod
    async def rerank(self, question: str, candidates: Sequence[str]) -> List[int]:
        """Indices into ``candidates`` that are relevant, best first."""

    @abstractmethod
    async def generate(
        self,
        question: str,
        context: str,
        total_found: int,
        now: datetime,
        persona: str
    ) -> str:
        """Final answer text."""

    @abstractmethod
    async def critique(self, question: str, context: str, answer: str) -> Critique:
        """Score (0-100) and critique of a draft answer."""

    @abstractmethod
    async def rewrite(
        self,
        question: str,
        context: str,
        critique: str,
        persona: str
    ) -> str:
        """Corrected answer following ``critique``."""


class ChatCompletionsLLM(ScheduleLLM):
    """ScheduleLLM over an OpenAI-compatible chat-completions HTTP API."""

    def __init__(
        self,
        config: LLMConfig,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None
    ):
        api_key = api_key or config.resolve_api_key()
        if not api_key:
            raise ConfigurationError(f"{config.api_key_env} is not set")

        self.config = config
        self._api_key = api_key
        self._client = client
        self.retry_policy = retry_policy or RetryPolicy(max_retries=config.max_retries)
        self.stats = {"calls": 0, "failures": 0}

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    async def expand(self, question: str, limit: int) -> List[str]:
        data = await self._complete_json(
            "expand",
            prompts.EXPAND_SYSTEM.format(limit=limit),
            question,
        )
        queries = data.get("queries", [])
        if not isinstance(queries, list):
            raise MalformedResponseError("'queries' is not a list", "expand")
        return [q.strip() for q in queries if isinstance(q, str) and q.strip()]

    async def rerank(self, question: str, candidates: Sequence[str]) -> List[int]:
        user = f"Query: {question}\nItems:\n{prompts.render_candidates(candidates)}"
        data = await self._complete_json("rerank", prompts.RERANK_SYSTEM, user)

        indices = data.get("relevant_indices")
        if not isinstance(indices, list):
            raise MalformedResponseError("'relevant_indices' is not a list", "rerank")

        result = []
        for value in indices:
            if isinstance(value, bool):
                continue
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            if isinstance(value, int):
                result.append(value)
        return result

    async def generate(
        self,
        question: str,
        context: str,
        total_found: int,
        now: datetime,
        persona: str
    ) -> str:
        system = prompts.GENERATE_SYSTEM.format(
            persona=persona,
            today=prompts.human_date(now),
            context=context,
            month=now.strftime('%B'),
        )
        user = prompts.GENERATE_USER.format(total_found=total_found, question=question)
        return await self._complete("generate", system, user)

    async def critique(self, question: str, context: str, answer: str) -> Critique:
        user = f"Question: {question}\nContext: {context}\nAnswer: {answer}"
        data = await self._complete_json("critique", prompts.CRITIQUE_SYSTEM, user)

        score = data.get("score")
        if isinstance(score, str):
            try:
                score = float(score)
            except ValueError:
                raise MalformedResponseError(f"score is not numeric: {score!r}", "critique")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise MalformedResponseError("missing numeric 'score'", "critique")

        text = data.get("critique") or ""
        return Critique(score=float(score), critique=str(text))

    async def rewrite(
        self,
        question: str,
        context: str,
        critique: str,
        persona: str
    ) -> str:
        system = prompts.REWRITE_SYSTEM.format(persona=persona, critique=critique)
        user = f"Context: {context}\nQuestion: {question}"
        return await self._complete("rewrite", system, user)

    async def _complete_json(self, stage: str, system: str, user: str) -> Dict[str, Any]:
        content = await self._complete(stage, system, user, structured=True)
        try:
            data = json.loads(content)
        except ValueError as e:
            raise MalformedResponseError(f"invalid JSON output: {e}", stage)
        if not isinstance(data, dict):
            raise MalformedResponseError("structured output is not an object", stage)
        return data

    async def _complete(
        self,
        stage: str,
        system: str,
        user: str,
        structured: bool = False
    ) -> str:
        body: Dict[str, Any] = {
            "model": self.config.model,
            "temperature": self.config.temperature,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        if structured:
            body["response_format"] = {"type": "json_object"}

        self.stats["calls"] += 1
        start = time.perf_counter()
        try:
            payload = await self.retry_policy.execute(self._post, stage, body)
        except Exception:
            self.stats["failures"] += 1
            raise
        latency = (time.perf_counter() - start) * 1000
        logger.debug(f"LLM {stage} completed in {latency:.1f}ms")

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise MalformedResponseError("response has no choices[0].message", stage)

        if content is None or not str(content).strip():
            raise EmptyCompletionError("No answer from AI", stage)
        return str(content)

    async def _post(self, stage: str, body: Dict[str, Any]) -> Any:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.endpoint, json=body, headers=headers,
                    timeout=self.config.timeout_seconds
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.endpoint, json=body, headers=headers,
                        timeout=self.config.timeout_seconds
                    )
        except httpx.TimeoutException:
            raise LLMTransportError(
                f"request timed out after {self.config.timeout_seconds}s", stage
            )
        except httpx.HTTPError as e:
            raise LLMTransportError(f"request failed: {e}", stage)

        if response.status_code >= 400:
            raise LLMTransportError(
                f"service returned HTTP {response.status_code}",
                stage,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise MalformedResponseError("response body is not JSON", stage)
