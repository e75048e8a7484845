from bracketcore.models.entrant import Entrant
from bracketcore.models.event import Event, GenderConstraint, RosterKind
from bracketcore.models.match import Match
from bracketcore.models.team import Team
from bracketcore.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Event",
    "RosterKind",
    "GenderConstraint",
    "Entrant",
    "Match",
    "Team",
]
