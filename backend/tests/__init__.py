# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from bracketcore.models.entrant import Entrant  # noqa: F401
from bracketcore.models.event import Event  # noqa: F401
from bracketcore.models.match import Match  # noqa: F401
from bracketcore.models.team import Team  # noqa: F401
from bracketcore.models.tournament import Tournament  # noqa: F401
