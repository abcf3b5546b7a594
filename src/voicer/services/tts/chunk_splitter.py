"""
Chunk Splitter for Batch Dialogue Synthesis.

Long dialogue lines are split into speakable segments that fit the per-request
character budget of the speech API. Splitting prefers natural boundaries:

    1. sentence ends (``.``, ``!``, ``?``, punctuation kept with its sentence)
    2. blank-line paragraph breaks, for chunks a single sentence still overflows
    3. word boundaries, as a last resort for text with neither

Each pass is an explicit greedy packing loop over the pieces produced by the
previous one, so every step can be tested on its own.

Usage:
    splitter = ChunkSplitter(max_chars=1000)
    for chunk in splitter.split(dialogue_text):
        ...
"""

import re
from typing import List

# A run of non-terminators closed by one or more terminators, or a trailing run
# with no terminator. Together the matches cover the whole input.
_SENTENCE_PATTERN = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n+")

DEFAULT_MAX_CHARS = 1000


class ChunkSplitter:
    """
    Stateless splitter turning one dialogue text into ordered chunks.

    Every returned chunk is stripped and non-empty. Text at or under
    ``max_chars`` is returned unchanged as a single chunk.

    Attributes:
        max_chars: Character budget per chunk (default: 1000)
    """

    def __init__(self, max_chars: int = DEFAULT_MAX_CHARS):
        if max_chars < 1:
            raise ValueError("max_chars must be positive")
        self.max_chars = max_chars

    def split(self, text: str) -> List[str]:
        """
        Split ``text`` into chunks of at most ``max_chars`` characters.

        Args:
            text: Cleaned dialogue text (must not be empty)

        Returns:
            Ordered list of chunks; ``[text]`` when no split is needed
        """
        if len(text) <= self.max_chars:
            return [text]

        chunks: List[str] = []
        for chunk in self._pack(self.split_sentences(text), joiner=""):
            if len(chunk) <= self.max_chars:
                chunks.append(chunk)
                continue
            for paragraph_chunk in self._pack(
                _PARAGRAPH_BREAK.split(chunk), joiner="\n\n"
            ):
                if len(paragraph_chunk) <= self.max_chars:
                    chunks.append(paragraph_chunk)
                else:
                    chunks.extend(self._hard_split(paragraph_chunk))
        return chunks

    @staticmethod
    def split_sentences(text: str) -> List[str]:
        """Return sentence pieces with their original leading whitespace."""
        sentences = _SENTENCE_PATTERN.findall(text)
        return sentences or [text]

    def _pack(self, pieces: List[str], joiner: str) -> List[str]:
        """Greedily join pieces while the running chunk stays within budget."""
        packed: List[str] = []
        current = ""

        for piece in pieces:
            if not piece.strip():
                continue
            candidate = f"{current}{joiner}{piece}" if current else piece
            if len(candidate) <= self.max_chars or not current:
                current = candidate
            else:
                packed.append(current.strip())
                current = piece

        if current.strip():
            packed.append(current.strip())
        return packed

    def _hard_split(self, text: str) -> List[str]:
        """Cut at the last space inside the budget, or mid-word if there is none."""
        pieces: List[str] = []
        remaining = text
        while len(remaining) > self.max_chars:
            split_at = remaining.rfind(" ", 0, self.max_chars + 1)
            if split_at <= 0:
                split_at = self.max_chars
            head = remaining[:split_at].strip()
            if head:
                pieces.append(head)
            remaining = remaining[split_at:].strip()
        if remaining:
            pieces.append(remaining)
        return pieces


def split_into_chunks(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> List[str]:
    """Functional shortcut for ``ChunkSplitter(max_chars).split(text)``."""
    return ChunkSplitter(max_chars).split(text)


__all__ = ["ChunkSplitter", "DEFAULT_MAX_CHARS", "split_into_chunks"]
