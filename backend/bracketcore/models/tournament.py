from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracketcore.models.entrant import Entrant
    from bracketcore.models.event import Event
    from bracketcore.models.match import Match


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    location: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    events: List["Event"] = Relationship(back_populates="tournament")
    entrants: List["Entrant"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
