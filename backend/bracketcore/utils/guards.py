"""
Lookup guards shared by route handlers.

Each helper fetches a record or raises 404, optionally checking that it
belongs to the tournament named in the URL.
"""

from fastapi import HTTPException
from sqlmodel import Session

from bracketcore.models.event import Event
from bracketcore.models.match import Match
from bracketcore.models.tournament import Tournament


def get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def get_event_or_404(session: Session, event_id: int, tournament_id: int = None) -> Event:
    """
    Get an event or raise 404.

    Args:
        session: Database session
        event_id: Event ID
        tournament_id: Optional tournament ID for ownership validation

    Raises:
        HTTPException 404: Event not found or doesn't belong to tournament
    """
    event = session.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    if tournament_id and event.tournament_id != tournament_id:
        raise HTTPException(
            status_code=404, detail=f"Event {event_id} does not belong to tournament {tournament_id}"
        )
    return event


def get_match_or_404(session: Session, match_id: int, tournament_id: int) -> Match:
    """
    Get a match of a tournament or raise 404.

    Raises:
        HTTPException 404: Tournament missing, match missing, or match in another tournament
    """
    get_tournament_or_404(session, tournament_id)
    match = session.get(Match, match_id)
    if not match or match.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Match not found")
    return match
