"""Read-only position over the text of an authorized_keys line.

A cursor never copies the source text; tokens are only materialized as
strings when a grammar rule hands them over to the data model.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

# isspace() of the C locale, without the vertical tab
ASCII_WHITESPACE = frozenset(" \t\n\x0c\r")


def is_ascii_whitespace(char: str) -> bool:
    return char in ASCII_WHITESPACE


@dataclass(frozen=True)
class Cursor:
    text: str
    pos: int = 0

    @property
    def remaining(self) -> str:
        return self.text[self.pos :]

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> Optional[str]:
        if self.at_end():
            return None
        return self.text[self.pos]

    def advance(self, count: int) -> "Cursor":
        return Cursor(self.text, min(self.pos + count, len(self.text)))

    def skip_char(self) -> "Cursor":
        return self.advance(1)

    def find(self, predicate: Callable[[str], bool]) -> Optional[int]:
        """Return the offset of the next character matching predicate, or None."""
        for index in range(self.pos, len(self.text)):
            if predicate(self.text[index]):
                return index - self.pos
        return None

    def skip_while(self, predicate: Callable[[str], bool]) -> "Cursor":
        offset = self.find(lambda c: not predicate(c))
        if offset is None:
            return Cursor(self.text, len(self.text))
        return self.advance(offset)

    def skip_whitespace(self) -> "Cursor":
        return self.skip_while(is_ascii_whitespace)

    def take_while(self, predicate: Callable[[str], bool]) -> Tuple[str, "Cursor"]:
        rest = self.skip_while(predicate)
        return self.slice_to(rest), rest

    def slice_to(self, other: "Cursor") -> str:
        return self.text[self.pos : other.pos]
