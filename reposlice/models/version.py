"""
Versions — Ordered component versions and version ranges.

A version has the form ``major.minor.micro.qualifier``. Numeric segments
compare numerically, the qualifier compares as a plain string, and
missing segments default to zero (or an empty qualifier):

    1         == 1.0.0
    1.2.3     <  1.2.3.v2024
    1.10      >  1.9

A range uses interval notation, or a bare version meaning "at least":

    [1.0,2.0)    1.0 <= v < 2.0
    (1.0,2.0]    1.0 <  v <= 2.0
    [1.5,1.5]    exactly 1.5 (a strict range)
    1.0          v >= 1.0
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from ..validation import VersionFormatError


@dataclass(frozen=True, order=True)
class Version:
    """An ordered version. Field order defines the comparison order."""

    major: int = 0
    minor: int = 0
    micro: int = 0
    qualifier: str = ""

    @classmethod
    def parse(cls, text: Union[str, "Version", None]) -> "Version":
        """Parse ``major[.minor[.micro[.qualifier]]]``."""
        if isinstance(text, Version):
            return text
        if text is None:
            return EMPTY_VERSION

        raw = str(text).strip()
        if not raw:
            return EMPTY_VERSION

        parts = raw.split(".", 3)
        numbers = []
        for part in parts[:3]:
            if not (part.isascii() and part.isdigit()):
                raise VersionFormatError("Invalid version segment", raw)
            numbers.append(int(part))

        qualifier = parts[3] if len(parts) == 4 else ""
        if len(parts) == 4 and not qualifier:
            raise VersionFormatError("Empty version qualifier", raw)
        if any(not (c.isalnum() or c in "-_") for c in qualifier):
            raise VersionFormatError("Invalid characters in version qualifier", raw)

        while len(numbers) < 3:
            numbers.append(0)

        return cls(numbers[0], numbers[1], numbers[2], qualifier)

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.micro}"
        return f"{base}.{self.qualifier}" if self.qualifier else base


EMPTY_VERSION = Version()


@dataclass(frozen=True)
class VersionRange:
    """A version interval. ``maximum=None`` means unbounded."""

    minimum: Version = EMPTY_VERSION
    include_minimum: bool = True
    maximum: Optional[Version] = None
    include_maximum: bool = False

    @classmethod
    def parse(cls, text: Union[str, "VersionRange", None]) -> "VersionRange":
        """Parse interval notation or a bare lower bound."""
        if isinstance(text, VersionRange):
            return text
        if text is None:
            return ANY_VERSION

        raw = str(text).strip()
        if not raw:
            return ANY_VERSION

        if raw[0] not in "[(":
            return cls(minimum=Version.parse(raw))

        if raw[-1] not in "])":
            raise VersionFormatError("Unterminated version range", raw)

        body = raw[1:-1]
        if body.count(",") != 1:
            raise VersionFormatError("Version range needs exactly two bounds", raw)

        low_text, high_text = (part.strip() for part in body.split(","))
        low = Version.parse(low_text)
        high = Version.parse(high_text)
        if high < low:
            raise VersionFormatError("Version range upper bound below lower bound", raw)

        return cls(
            minimum=low,
            include_minimum=raw[0] == "[",
            maximum=high,
            include_maximum=raw[-1] == "]",
        )

    @classmethod
    def exactly(cls, version: Union[str, Version]) -> "VersionRange":
        """A strict range pinning a single version."""
        v = Version.parse(version)
        return cls(minimum=v, include_minimum=True, maximum=v, include_maximum=True)

    @property
    def is_strict(self) -> bool:
        """True when the range admits exactly one version."""
        return (
            self.maximum is not None
            and self.include_minimum
            and self.include_maximum
            and self.minimum == self.maximum
        )

    def __contains__(self, version: Version) -> bool:
        if self.include_minimum:
            if version < self.minimum:
                return False
        elif version <= self.minimum:
            return False

        if self.maximum is None:
            return True
        if self.include_maximum:
            return version <= self.maximum
        return version < self.maximum

    def __str__(self) -> str:
        if self.maximum is None:
            return str(self.minimum)
        left = "[" if self.include_minimum else "("
        right = "]" if self.include_maximum else ")"
        return f"{left}{self.minimum},{self.maximum}{right}"


ANY_VERSION = VersionRange()
