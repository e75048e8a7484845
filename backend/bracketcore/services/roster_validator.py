"""
Team / pair roster validation.

Rules run in a fixed order and stop at the first failure so the caller
can render one precise message:
    1. members distinct by entrant id        -> DuplicateEntrant
    2. member count within [min, max]        -> RosterSizeOutOfRange
    3. male/female events: every member's gender matches
                                             -> GenderConstraintViolation
    4. mixed events: no per-member check; events without a gender field
       perform no check either
    5. teams need a non-empty name           -> MissingTeamName
       pairs get "A / B" when no name is given
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from bracketcore.models.event import GenderConstraint, RosterKind
from bracketcore.services.bracket_types import ErrorKind

PAIR_NAME_SEPARATOR = " / "


@dataclass(frozen=True)
class EventCategory:
    kind: RosterKind
    gender_constraint: Optional[GenderConstraint]
    min_size: int
    max_size: int


@dataclass(frozen=True)
class RosterMember:
    entrant_id: int
    gender: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class RosterCandidate:
    category: EventCategory
    members: Sequence[RosterMember] = field(default_factory=tuple)
    name: Optional[str] = None


@dataclass(frozen=True)
class RosterValidationResult:
    valid: bool
    reason: Optional[ErrorKind] = None
    detail: Optional[str] = None
    name: Optional[str] = None


def _fail(reason: ErrorKind, detail: str) -> RosterValidationResult:
    return RosterValidationResult(valid=False, reason=reason, detail=detail)


def synthesize_pair_name(members: Sequence[RosterMember]) -> str:
    labels: List[str] = []
    for m in members:
        labels.append(m.display_name.strip() if m.display_name and m.display_name.strip() else f"#{m.entrant_id}")
    return PAIR_NAME_SEPARATOR.join(labels)


def validate_roster(candidate: RosterCandidate) -> RosterValidationResult:
    category = candidate.category
    members = list(candidate.members)

    seen = set()
    for member in members:
        if member.entrant_id in seen:
            return _fail(ErrorKind.DuplicateEntrant, f"Entrant {member.entrant_id} is listed more than once")
        seen.add(member.entrant_id)

    if not category.min_size <= len(members) <= category.max_size:
        return _fail(
            ErrorKind.RosterSizeOutOfRange,
            f"A {category.kind.value} needs {category.min_size}-{category.max_size} members, got {len(members)}",
        )

    constraint = category.gender_constraint
    if constraint in (GenderConstraint.male, GenderConstraint.female):
        for member in members:
            if member.gender != constraint.value:
                return _fail(
                    ErrorKind.GenderConstraintViolation,
                    f"Entrant {member.entrant_id} ({member.gender or 'unknown'}) "
                    f"cannot join a {constraint.value} {category.kind.value}",
                )

    name = candidate.name.strip() if candidate.name else ""
    if category.kind is RosterKind.team:
        if not name:
            return _fail(ErrorKind.MissingTeamName, "A team needs a name")
    elif not name:
        name = synthesize_pair_name(members)

    return RosterValidationResult(valid=True, name=name)
