"""
Question-answering pipeline over a personal schedule.

Per query, strictly linear:

    normalize -> expand -> rank -> coarse filter -> rerank
      -> strict filter -> generate -> reflect (conditional)

The item set is rebuilt from the supplied events and tasks on every call,
so there is no index to go stale and no state shared between questions.
"""

import re
import time
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from loguru import logger

from .config import Config
from .errors import GenerationError
from .llm import ChatCompletionsLLM, ScheduleLLM
from .models import AssistantReply, ScheduleEvent, ScheduleTask
from .normalizer import normalize
from .ranker import HybridRanker
from .stages import AnswerGenerator, OracleReranker, QueryExpander, ReflectionLoop
from .temporal import coarse_filter, detect_intent, strict_filter

CONFIGURE_MESSAGE = "Please configure your {env} to use Mr. Crock AI."
UNCLEAR_MESSAGE = "I didn't quite catch that. Could you say it again?"
NO_DATA_MESSAGE = "I don't see any events or tasks in your schedule yet."
INVALID_DATA_MESSAGE = "I couldn't read your schedule data. Please check your events and tasks."
GREETING_MESSAGE = (
    "Hello there! I'm {persona}, your Klyo assistant. "
    "How can I help with your schedule today?"
)

GREETINGS = frozenset({"hi", "hello", "hey", "hola", "yo"})

PERSONAS = {
    "frog": "Dr. Frog",
    "drfrog": "Dr. Frog",
    "coach": "Coach",
    "analyst": "Analyst",
    "planner": "Planner",
    "crock": "Mr. Crock",
}

_MENTION = re.compile(
    r"^\s*@(" + "|".join(sorted(PERSONAS, key=len, reverse=True)) + r")\b\s*[/:]?\s*",
    re.IGNORECASE,
)

EventInput = Union[ScheduleEvent, Mapping[str, Any]]
TaskInput = Union[ScheduleTask, Mapping[str, Any]]


def split_persona(question: str, default: str) -> Tuple[str, str]:
    """Strip a leading @persona mention. Returns (persona, question)."""
    match = _MENTION.match(question)
    if not match:
        return default, question
    return PERSONAS[match.group(1).lower()], question[match.end():]


def is_greeting(question: str) -> bool:
    return re.sub(r"[^\w]", "", question.lower()) in GREETINGS


def _as_events(events: Iterable[EventInput]) -> List[ScheduleEvent]:
    return [
        e if isinstance(e, ScheduleEvent) else ScheduleEvent.model_validate(e)
        for e in events
    ]


def _as_tasks(tasks: Iterable[TaskInput]) -> List[ScheduleTask]:
    return [
        t if isinstance(t, ScheduleTask) else ScheduleTask.model_validate(t)
        for t in tasks
    ]


class SchedulePipeline:
    """
    Answers free-text questions about calendar events and tasks.

    The API credential is checked before anything else on every call;
    without it no work is done and no request is sent. Pass ``llm`` to
    replace the HTTP service (tests, alternative backends).
    """

    def __init__(self, config: Optional[Config] = None, llm: Optional[ScheduleLLM] = None):
        self.config = config or Config()
        self._llm = llm
        self.ranker = HybridRanker(self.config.retrieval)

    async def ask(
        self,
        question: str,
        events: Iterable[EventInput],
        tasks: Iterable[TaskInput],
        now: Optional[datetime] = None
    ) -> str:
        """Plain-string form of :meth:`answer`."""
        reply = await self.answer(question, events, tasks, now)
        return reply.answer

    async def answer(
        self,
        question: str,
        events: Iterable[EventInput],
        tasks: Iterable[TaskInput],
        now: Optional[datetime] = None
    ) -> AssistantReply:
        """Run the full pipeline for one question."""
        start = time.perf_counter()
        now = now or datetime.now()
        default_persona = self.config.assistant.default_persona

        api_key = self.config.llm.resolve_api_key()
        if not api_key:
            return AssistantReply(
                answer=CONFIGURE_MESSAGE.format(env=self.config.llm.api_key_env),
                persona=default_persona,
            )

        if not isinstance(question, str) or not question.strip():
            return AssistantReply(answer=UNCLEAR_MESSAGE, persona=default_persona)

        persona, question = split_persona(question, default_persona)
        question = question.strip()
        if not question:
            return AssistantReply(answer=UNCLEAR_MESSAGE, persona=persona)

        if is_greeting(question):
            return AssistantReply(answer=GREETING_MESSAGE.format(persona=persona), persona=persona)

        try:
            items = normalize(_as_events(events), _as_tasks(tasks), now)
        except ValueError as e:
            # pydantic ValidationError is a ValueError too
            logger.error(f"Rejected schedule data: {e}")
            return AssistantReply(answer=INVALID_DATA_MESSAGE, persona=persona, failed=True)
        if not items:
            return AssistantReply(answer=NO_DATA_MESSAGE, persona=persona)

        llm = self._llm or ChatCompletionsLLM(self.config.llm, api_key=api_key)
        retrieval = self.config.retrieval
        logger.debug(f"Answering question over {len(items)} items: {question!r}")

        queries = await QueryExpander(llm, retrieval.max_expansions).expand(question)

        intent = detect_intent(question)
        ranked = self.ranker.rank(queries, items, intent, now)
        ranked = coarse_filter(ranked, intent)

        shortlist = [c.item for c in ranked[:retrieval.shortlist_size]]
        overflow = [c.item for c in ranked[retrieval.shortlist_size:]]
        candidates = await OracleReranker(llm).rerank(question, shortlist) + overflow

        candidates = strict_filter(candidates, question, now)
        total_found = len(candidates)

        generator = AnswerGenerator(llm, retrieval.context_limit)
        context_texts, context = generator.build_context(candidates)

        reply = AssistantReply(
            answer="",
            persona=persona,
            total_found=total_found,
            context=context_texts,
            queries=queries,
        )

        try:
            draft = await generator.generate(question, context, total_found, now, persona)
        except GenerationError as e:
            logger.error(f"Answer generation failed: {e.reason}")
            reply.answer = f"Error: {e.reason}. Please try again."
            reply.failed = True
            return reply

        reply.answer = draft
        reflection = ReflectionLoop(llm, self.config.reflection)
        if reflection.should_reflect(question, draft):
            improved = await reflection.refine(question, draft, context, persona)
            if improved:
                reply.answer = improved
                reply.reflected = True

        latency = (time.perf_counter() - start) * 1000
        logger.info(
            f"Answered with {total_found} matching items in {latency:.0f}ms "
            f"(intent={intent.value}, reflected={reply.reflected})"
        )
        return reply


async def rag_query(
    question: str,
    events: Iterable[EventInput],
    tasks: Iterable[TaskInput],
    config: Optional[Config] = None,
    now: Optional[datetime] = None
) -> str:
    """One-shot convenience wrapper returning the answer text."""
    return await SchedulePipeline(config).ask(question, events, tasks, now)
