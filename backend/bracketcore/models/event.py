from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracketcore.models.entrant import Entrant
    from bracketcore.models.match import Match
    from bracketcore.models.team import Team
    from bracketcore.models.tournament import Tournament


class RosterKind(str, Enum):
    pair = "pair"
    team = "team"


class GenderConstraint(str, Enum):
    male = "male"
    female = "female"
    mixed = "mixed"


class Event(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "name", name="uq_tournament_event"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id")
    name: str
    # None for singles events (no roster formation)
    roster_kind: Optional[RosterKind] = Field(default=None, sa_column=Column(String, nullable=True))
    # None means the event carries no gender field at all
    gender_constraint: Optional[GenderConstraint] = Field(default=None, sa_column=Column(String, nullable=True))
    min_roster_size: Optional[int] = Field(default=None)
    max_roster_size: Optional[int] = Field(default=None)
    series_format: int = Field(default=5)  # best-of-N, 5 or 7
    notes: Optional[str] = None

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="events")
    entrants: List["Entrant"] = Relationship(back_populates="event")
    matches: List["Match"] = Relationship(back_populates="event")
    teams: List["Team"] = Relationship(back_populates="event")
