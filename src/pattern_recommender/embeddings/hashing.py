"""
Deterministic hash-based embeddings.

This strategy has no external dependency and is always available, which
makes it the last link of every fallback chain. Its output is a frozen
contract: stored vectors and tests depend on the exact values, so the
accumulation rule below must not change.

For a text ``t`` and ``D`` dimensions:

1. ``words = re.split(r"\\s+", t.lower())``
2. ``h(word)`` is the 32-bit rolling hash ``h = int32(h * 31 + c)`` over the
   UTF-16 code units ``c`` of the word, made non-negative with ``abs``.
3. For word ``i`` and its first ten code units ``j``:
   ``v[(h + j + 7 * i) % D] += (c_j / 255) * 0.5 + sin(h * j) * 0.3``
4. ``v`` is L2-normalized.
"""

from __future__ import annotations

import math
import re
from typing import Sequence

from .base import EmbeddingStrategy, l2_normalize


SIMPLE_HASH_NAME = "simple-hash"
SIMPLE_HASH_MODEL = "simplified-hash"
SIMPLE_HASH_DIMENSIONS = 384

_MAX_CHARS_PER_WORD = 10
_WORD_STRIDE = 7
_WHITESPACE_RE = re.compile(r"\s+")


def _utf16_units(word: str) -> list[int]:
    raw = word.encode("utf-16-le")
    return [int.from_bytes(raw[k : k + 2], "little") for k in range(0, len(raw), 2)]


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def rolling_hash(units: Sequence[int]) -> int:
    """Non-negative 32-bit ``h * 31 + c`` hash over UTF-16 code units."""
    value = 0
    for unit in units:
        value = _to_int32((value << 5) - value + unit)
    return abs(value)


def hash_embedding(text: str, dimensions: int = SIMPLE_HASH_DIMENSIONS) -> list[float]:
    """Embed *text* with the frozen hashing rule described in the module docstring."""
    vector = [0.0] * dimensions
    for i, word in enumerate(_WHITESPACE_RE.split(text.lower())):
        units = _utf16_units(word)
        word_hash = rolling_hash(units)
        for j in range(min(len(units), _MAX_CHARS_PER_WORD)):
            position = (word_hash + j + i * _WORD_STRIDE) % dimensions
            vector[position] += (units[j] / 255) * 0.5 + math.sin(word_hash * j) * 0.3
    return l2_normalize(vector)


class SimpleHashStrategy(EmbeddingStrategy):
    """Always-available deterministic fallback."""

    name = SIMPLE_HASH_NAME
    model_id = SIMPLE_HASH_MODEL

    def __init__(self, dimensions: int = SIMPLE_HASH_DIMENSIONS) -> None:
        if dimensions < 1:
            raise ValueError("dimensions must be >= 1")
        self.dimensions = dimensions

    async def generate(self, text: str) -> list[float]:
        return hash_embedding(text, self.dimensions)

    async def generate_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [hash_embedding(text, self.dimensions) for text in texts]

    async def is_available(self) -> bool:
        return True
