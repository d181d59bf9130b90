"""Word-window chunking for embedding.

Token count is approximated by whitespace word count. Text at or under the
window size is one chunk, verbatim. Longer text is covered by windows of
``chunk_size`` words whose starts advance by ``chunk_size - overlap`` until the
start reaches the end of the text; each window is re-joined with single spaces.
"""
from dataclasses import dataclass
from typing import List

from src.config import settings


@dataclass(frozen=True)
class TextChunk:
    index: int
    content: str


def chunk_text(
    text: str,
    chunk_size: int = settings.CHUNK_SIZE_WORDS,
    overlap: int = settings.CHUNK_OVERLAP_WORDS,
) -> List[TextChunk]:
    if overlap >= chunk_size:
        raise ValueError("overlap must be smaller than chunk_size")

    words = text.split()
    if not words:
        return []
    if len(words) <= chunk_size:
        return [TextChunk(index=0, content=text)]

    step = chunk_size - overlap
    chunks = []
    for index, start in enumerate(range(0, len(words), step)):
        window = words[start:start + chunk_size]
        chunks.append(TextChunk(index=index, content=" ".join(window)))
    return chunks
