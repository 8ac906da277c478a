"""
Hashing embedder and cosine similarity.

This is the hashing trick, not a learned model: tokens are hashed into
256 buckets and counted. Collisions are expected. The vector signal is
only a tiebreaker in the hybrid ranker.
"""

import re
from typing import List

import numpy as np

from .models import RetrievableItem

EMBEDDING_DIM = 256

_TOKEN_SPLIT = re.compile(r"\W+", re.ASCII)


def tokenize(text: str) -> List[str]:
    """Lower-case and split on non-word characters, dropping empties."""
    return [tok for tok in _TOKEN_SPLIT.split(text.lower()) if tok]


def bucket(token: str) -> int:
    """Rolling hash of a token into [0, EMBEDDING_DIM)."""
    h = 0
    for ch in token:
        h = (h * 31 + ord(ch)) % EMBEDDING_DIM
    return h


def embed(text: str) -> np.ndarray:
    """Deterministic term-count vector for ``text``."""
    vec = np.zeros(EMBEDDING_DIM, dtype=np.float64)
    for token in tokenize(text):
        vec[bucket(token)] += 1
    return vec


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine of the angle between two vectors; 0.0 if either is all zeros."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def item_embedding(item: RetrievableItem) -> np.ndarray:
    """Embedding of an item's rendered text, computed once per item."""
    if item.embedding is None:
        item.embedding = embed(item.rendered_text)
    return item.embedding
