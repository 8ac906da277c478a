"""
Hybrid ranker combining vector, lexical and recency signals.

total = vector * vector_weight + lexical + recency

The hashed vectors are crude, so the weight keeps them in the same range
as the integer lexical hits: a tiebreaker, never the dominant signal.
"""

from datetime import datetime
from typing import Iterable, List, Sequence, Set

from loguru import logger

from .config import RetrievalConfig
from .embedding import cosine_similarity, embed, item_embedding, tokenize
from .models import RetrievableItem, ScoredCandidate, TemporalTag
from .temporal import TemporalIntent

STOP_WORDS = frozenset({
    'a', 'an', 'the', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by',
    'and', 'or', 'is', 'are', 'was', 'were',
})


def query_terms(queries: Iterable[str], min_length: int = 3) -> List[str]:
    """Distinct lexical terms across all query variants, in first-seen order."""
    seen: Set[str] = set()
    terms = []
    for query in queries:
        for tok in tokenize(query):
            if len(tok) < min_length or tok in STOP_WORDS or tok in seen:
                continue
            seen.add(tok)
            terms.append(tok)
    return terms


class HybridRanker:
    """Scores every item against a set of query variants."""

    def __init__(self, config: RetrievalConfig):
        self.config = config

    def rank(
        self,
        queries: Sequence[str],
        items: Sequence[RetrievableItem],
        intent: TemporalIntent,
        now: datetime
    ) -> List[ScoredCandidate]:
        """Score and sort all items, best first. Ties keep input order."""
        query_vectors = [embed(q) for q in queries]
        terms = query_terms(queries, self.config.min_term_length)

        scored = []
        for item in items:
            vector = self.vector_score(query_vectors, item)
            lexical = self.lexical_score(terms, item)
            recency = self.recency_score(item, intent, now)
            scored.append(ScoredCandidate(
                item=item,
                score=vector * self.config.vector_weight + lexical + recency,
                vector_score=vector,
                lexical_score=lexical,
                recency_score=recency,
            ))

        scored.sort(key=lambda c: c.score, reverse=True)

        if scored:
            logger.debug(
                f"Ranked {len(scored)} items with {len(terms)} terms, "
                f"top={scored[0].item.id} ({scored[0].score:.2f})"
            )
        return scored

    def vector_score(self, query_vectors, item: RetrievableItem) -> float:
        """Best cosine similarity over all query variants."""
        if not query_vectors:
            return 0.0
        vec = item_embedding(item)
        return max(cosine_similarity(q, vec) for q in query_vectors)

    def lexical_score(self, terms: Sequence[str], item: RetrievableItem) -> float:
        """One point per term found in the text, plus a flat title bonus."""
        text = item.rendered_text.lower()
        title = item.title.lower()

        score = float(sum(1 for term in terms if term in text))
        if any(term in title for term in terms):
            score += self.config.title_boost
        return score

    def recency_score(
        self,
        item: RetrievableItem,
        intent: TemporalIntent,
        now: datetime
    ) -> float:
        """Intent-aware boost or penalty based on the item's temporal tag."""
        cfg = self.config

        if intent is TemporalIntent.PRESENT:
            if item.tag is TemporalTag.TODAY:
                return cfg.today_boost
            if item.tag is TemporalTag.PAST:
                return cfg.past_penalty
            if item.tag is TemporalTag.UPCOMING:
                days_ahead = (item.day - now.date()).days
                if days_ahead <= cfg.upcoming_window_days:
                    return cfg.upcoming_boost
            return 0.0

        if intent is TemporalIntent.PAST:
            return cfg.past_boost if item.tag is TemporalTag.PAST else 0.0

        return 0.0
