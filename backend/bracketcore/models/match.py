from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracketcore.models.event import Event
    from bracketcore.models.tournament import Tournament


class Match(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("event_id", "match_code", name="uq_match_event_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    match_code: str
    bracket_role: str = Field(default="MAIN")  # "MAIN" | "THIRD_PLACE"
    round_number: int
    sequence_in_round: int = Field(default=1)

    # Slot occupants: kind is EMPTY | BYE | ENTRANT | PLACEHOLDER.
    # source_match_id is the feeding match for PLACEHOLDER, and for ENTRANT the
    # match whose advancement placed the competitor (null when seeded).
    slot_a_kind: str = Field(default="EMPTY")
    slot_a_entrant_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    slot_a_source_match_id: Optional[int] = Field(default=None)
    slot_b_kind: str = Field(default="EMPTY")
    slot_b_entrant_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    slot_b_source_match_id: Optional[int] = Field(default=None)

    # Bracket wiring
    next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    loser_next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    # Ordered feeders: position 0 feeds slot A, position 1 feeds slot B
    source_match_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    status: str = Field(default="scheduled")  # scheduled | in_progress | finished

    # Result (present iff status == finished)
    series_format: int = Field(default=5)
    winner_slot: Optional[str] = Field(default=None)  # "A" | "B"
    sets_won_a: Optional[int] = Field(default=None)
    sets_won_b: Optional[int] = Field(default=None)
    outcome_kind: Optional[str] = Field(default=None)  # normal | walkover | retired

    # Optimistic concurrency token, bumped by every applied update
    version: int = Field(default=1)

    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
    event: "Event" = Relationship(back_populates="matches")
