"""Pydantic models for commit data read from a VCS backend."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Trailers(BaseModel):
    """Ordered, multi-valued trailer mapping.

    Tokens compare case-insensitively. Every occurrence is kept in order so
    that "last one wins" lookups stay possible.
    """

    model_config = ConfigDict(frozen=True)

    pairs: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> Trailers:
        return cls(pairs=tuple((token.strip(), value.strip()) for token, value in pairs))

    def get_all(self, token: str) -> list[str]:
        """All values recorded for *token*, in message order."""
        wanted = token.lower()
        return [value for key, value in self.pairs if key.lower() == wanted]

    def get_last(self, token: str) -> str | None:
        values = self.get_all(token)
        return values[-1] if values else None

    def merged(self, other: Trailers) -> Trailers:
        """Append pairs from *other* that are not already present."""
        seen = set(self.pairs)
        extra = [pair for pair in other.pairs if pair not in seen]
        if not extra:
            return self
        return Trailers(pairs=self.pairs + tuple(extra))

    def __contains__(self, token: object) -> bool:
        if not isinstance(token, str):
            return False
        wanted = token.lower()
        return any(key.lower() == wanted for key, _ in self.pairs)

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)


class CommitRecord(BaseModel):
    """A single commit as read from the backend. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    hash: str = Field(min_length=1)
    parent_hashes: tuple[str, ...] = ()
    message: str = ""
    trailers: Trailers = Field(default_factory=Trailers)
    author: str = ""
    timestamp: datetime = Field(
        default_factory=lambda: datetime.fromtimestamp(0, tz=timezone.utc)
    )

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("hash cannot be empty or whitespace")
        return v.strip()

    @property
    def is_merge(self) -> bool:
        return len(self.parent_hashes) > 1
