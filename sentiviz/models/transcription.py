"""Transcription-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Utterance:
    """A fragment of recognized speech."""
    text: str
    is_final: bool
    confidence: Optional[float] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def kind(self) -> str:
        return "final" if self.is_final else "interim"


class Transcript:
    """Append-only sequence of final utterance texts."""

    def __init__(self):
        self._fragments: List[str] = []
        self._text = ""

    def append(self, text: str) -> str:
        """Append a final fragment and return the new transcript text.

        The fragment is joined with a single space and the result is trimmed,
        so appending "hello" then "world" yields "hello world".
        """
        fragment = text.strip()
        if not fragment:
            return self._text
        self._fragments.append(fragment)
        self._text = f"{self._text} {fragment}".strip()
        return self._text

    def clear(self) -> None:
        self._fragments.clear()
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    @property
    def fragments(self) -> List[str]:
        return list(self._fragments)

    def __len__(self) -> int:
        return len(self._fragments)

    def __str__(self) -> str:
        return self._text
