from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracketcore.models.event import Event
    from bracketcore.models.tournament import Tournament


class Entrant(SQLModel, table=True):
    """A registered competitor (player or formed team) in one event."""

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    event_id: int = Field(foreign_key="event.id", index=True)
    display_name: str
    gender: Optional[str] = Field(default=None)  # "male" | "female" | "other"
    registered_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="entrants")
    event: "Event" = Relationship(back_populates="entrants")
