"""Deterministic stand-ins for the embedding, completion and pub/sub services."""
import zlib
from typing import List

from src.shared.exceptions import ExternalServiceError

EMBEDDING_DIM = 64


class HashingEmbeddings:
    """Bag-of-words embeddings: texts sharing words get nearby vectors."""

    def __init__(self, dim: int = EMBEDDING_DIM):
        self.dim = dim
        self.calls: List[str] = []

    async def aembed_query(self, text: str) -> List[float]:
        self.calls.append(text)
        vector = [0.0] * self.dim
        for word in text.lower().split():
            vector[zlib.crc32(word.strip(".,;:()").encode()) % self.dim] += 1.0
        return vector


class FailingEmbeddings:
    def __init__(self):
        self.calls = 0

    async def aembed_query(self, text: str) -> List[float]:
        self.calls += 1
        raise ConnectionError("embedding service down")


class ScriptedCompletion:
    """Returns queued replies in order (the last one repeats) and records prompts.

    A reply that is an exception instance is raised instead of returned.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, system_prompt, user_prompt, response_format=None, temperature=0.2, max_tokens=None):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "response_format": response_format,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingPublisher:
    def __init__(self):
        self.messages = []

    async def publish(self, topic, message):
        self.messages.append((topic, message))

    def of_type(self, message_type):
        return [m for _, m in self.messages if m.get("type") == message_type]


def service_error(message: str = "upstream timeout") -> ExternalServiceError:
    return ExternalServiceError("completion", message)


def words(n: int, prefix: str = "w") -> str:
    """``n`` distinct whitespace-separated tokens."""
    return " ".join(f"{prefix}{i}" for i in range(n))
