from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Optional, Tuple

from aistack.core.errors import InvalidVersionError


_VERSION_RE = re.compile(r"^\d+(?:\.\d+){0,2}$")
_CONSTRAINT_RE = re.compile(r"^(==|=|!=|>=|<=|>|<)?\s*([0-9]+(?:\.[0-9]+){0,2})$")

OPERATORS = ("=", "==", "!=", ">", ">=", "<", "<=")


@total_ordering
@dataclass(frozen=True)
class Version:
    major: int = 0
    minor: int = 0
    patch: int = 0

    def compare(self, other: "Version") -> int:
        a = (self.major, self.minor, self.patch)
        b = (other.major, other.minor, other.patch)
        if a < b:
            return -1
        if a > b:
            return 1
        return 0

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) < 0

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(value: str) -> Version:
    """MAJOR[.MINOR[.PATCH]]; missing segments default to 0."""
    v = str(value if value is not None else "")
    if not _VERSION_RE.match(v):
        raise InvalidVersionError(f"invalid version format: {v!r}", value=v)
    parts = [int(p) for p in v.split(".")]
    parts += [0] * (3 - len(parts))
    return Version(major=parts[0], minor=parts[1], patch=parts[2])


@dataclass(frozen=True)
class VersionConstraint:
    operator: str = "="
    version: Version = Version()

    def match(self, version: Version) -> bool:
        c = version.compare(self.version)
        op = self.operator
        if op in {"", "=", "=="}:
            return c == 0
        if op == "!=":
            return c != 0
        if op == ">":
            return c > 0
        if op == ">=":
            return c >= 0
        if op == "<":
            return c < 0
        if op == "<=":
            return c <= 0
        return False

    def __str__(self) -> str:
        return f"{self.operator}{self.version}"


def parse_constraint(value: str) -> VersionConstraint:
    v = str(value or "").strip()
    if not v:
        raise InvalidVersionError("constraint is required")
    m = _CONSTRAINT_RE.match(v)
    if m is None:
        raise InvalidVersionError(f"invalid constraint {v!r}", value=v)
    return VersionConstraint(operator=m.group(1) or "=", version=parse_version(m.group(2)))


def parse_module_dependency(value: str) -> Tuple[str, Optional[VersionConstraint]]:
    """"name" or "name@constraint" -> (name, constraint or None)."""
    name, sep, rest = str(value or "").partition("@")
    name = name.strip()
    if not name:
        raise InvalidVersionError("module name is required", value=str(value or ""))
    if not sep:
        return name, None
    return name, parse_constraint(rest.strip())
