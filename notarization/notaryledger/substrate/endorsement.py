"""
Per-key validation (endorsement) policies.

A policy is metadata attached to a state key naming the organizations that
must all endorse any later write to that key. The substrate checks it at
commit; contract code only builds and installs it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable

from ..errors import CorruptState
from ..util import canonical_json

RULE_AND = "AND"


@dataclass(frozen=True)
class ValidationPolicy:
    """All listed organizations must endorse (AND rule)."""

    orgs: frozenset[str]

    @classmethod
    def of(cls, orgs: Iterable[str]) -> ValidationPolicy:
        return cls(orgs=frozenset(o for o in orgs if o))

    def is_satisfied_by(self, endorsers: Iterable[str]) -> bool:
        return bool(self.orgs) and self.orgs.issubset(set(endorsers))

    def missing(self, endorsers: Iterable[str]) -> list[str]:
        return sorted(self.orgs.difference(endorsers))

    def includes(self, other: ValidationPolicy) -> bool:
        """True if this policy demands at least everything `other` demands."""
        return self.orgs.issuperset(other.orgs)

    def to_dict(self) -> dict[str, Any]:
        return {"orgs": sorted(self.orgs), "rule": RULE_AND}

    def to_bytes(self) -> bytes:
        return canonical_json(self.to_dict())

    @classmethod
    def from_bytes(cls, raw: bytes) -> ValidationPolicy:
        try:
            data = json.loads(raw)
            orgs = data["orgs"]
            if data.get("rule") != RULE_AND or not isinstance(orgs, list):
                raise ValueError("unsupported policy shape")
            if not all(isinstance(o, str) and o for o in orgs):
                raise ValueError("policy orgs must be non-empty strings")
        except (ValueError, TypeError, KeyError) as e:
            raise CorruptState(f"unreadable validation policy: {e}") from e
        return cls(orgs=frozenset(orgs))
