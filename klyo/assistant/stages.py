"""
Remote pipeline stages with their fallback rules.

Expansion, reranking and reflection are best-effort: any ``LLMError`` is
logged and the stage falls back (no expansions, input order, draft kept).
Generation is the one fatal stage and raises ``GenerationError``.
"""

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from . import prompts
from .config import ReflectionConfig
from .errors import GenerationError, LLMError
from .llm import ScheduleLLM
from .models import RetrievableItem


class QueryExpander:
    """Adds up to ``max_expansions`` alternate phrasings to the question."""

    def __init__(self, llm: ScheduleLLM, max_expansions: int = 3):
        self.llm = llm
        self.max_expansions = max_expansions

    async def expand(self, question: str) -> List[str]:
        """Final query set. The original question is always first."""
        queries = [question]
        if self.max_expansions <= 0:
            return queries

        try:
            alternates = await self.llm.expand(question, self.max_expansions)
        except LLMError as e:
            logger.warning(f"Query expansion failed, using original question only: {e}")
            return queries

        seen = {question.strip().lower()}
        for alt in alternates:
            key = alt.strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            queries.append(alt.strip())
            if len(queries) > self.max_expansions:
                break

        logger.debug(f"Expanded query into {len(queries)} variants")
        return queries


class OracleReranker:
    """Asks the model which shortlisted items are genuinely relevant."""

    def __init__(self, llm: ScheduleLLM):
        self.llm = llm

    async def rerank(
        self,
        question: str,
        candidates: Sequence[RetrievableItem]
    ) -> List[RetrievableItem]:
        """
        Selected items in the model's order, then the rest in input order.

        Nothing is dropped: unselected items are demoted so later stages
        keep fallback context. On failure the input order is returned.
        """
        candidates = list(candidates)
        if not candidates:
            return candidates

        try:
            indices = await self.llm.rerank(
                question, [c.rendered_text for c in candidates]
            )
        except LLMError as e:
            logger.warning(f"Rerank failed, keeping ranker order: {e}")
            return candidates

        chosen: List[int] = []
        for idx in indices:
            if 0 <= idx < len(candidates) and idx not in chosen:
                chosen.append(idx)

        selected = [candidates[i] for i in chosen]
        rest = [c for i, c in enumerate(candidates) if i not in chosen]
        logger.debug(f"Reranker selected {len(selected)}/{len(candidates)} candidates")
        return selected + rest


class AnswerGenerator:
    """Produces the grounded answer from the filtered context."""

    def __init__(self, llm: ScheduleLLM, context_limit: int = 50):
        self.llm = llm
        self.context_limit = context_limit

    def build_context(self, items: Sequence[RetrievableItem]) -> Tuple[List[str], str]:
        texts = [item.rendered_text for item in items[:self.context_limit]]
        return texts, prompts.render_context(texts)

    async def generate(
        self,
        question: str,
        context: str,
        total_found: int,
        now: datetime,
        persona: str
    ) -> str:
        """
        Raises:
            GenerationError: the service failed or returned no content
        """
        try:
            answer = await self.llm.generate(question, context, total_found, now, persona)
        except LLMError as e:
            raise GenerationError(str(e)) from e

        if not answer or not answer.strip():
            raise GenerationError("No answer from AI")
        return answer


class ReflectionLoop:
    """Critique the draft and rewrite it once when the score is low."""

    def __init__(self, llm: ScheduleLLM, config: ReflectionConfig):
        self.llm = llm
        self.config = config

    def should_reflect(self, question: str, answer: str) -> bool:
        """Only non-trivial exchanges are worth the extra round trip."""
        if not self.config.enabled:
            return False
        return (len(answer) > self.config.min_answer_chars
                or len(question) > self.config.min_question_chars)

    async def refine(
        self,
        question: str,
        answer: str,
        context: str,
        persona: str
    ) -> Optional[str]:
        """Rewritten answer, or None when no improvement is needed or possible."""
        try:
            review = await self.llm.critique(question, context, answer)
        except LLMError as e:
            logger.warning(f"Reflection critique failed, keeping draft: {e}")
            return None

        logger.debug(f"Reflection score {review.score:.0f}: {review.critique}")
        if review.score >= self.config.score_threshold:
            return None

        try:
            rewritten = await self.llm.rewrite(question, context, review.critique, persona)
        except LLMError as e:
            logger.warning(f"Reflection rewrite failed, keeping draft: {e}")
            return None

        if not rewritten or not rewritten.strip():
            return None
        return rewritten
