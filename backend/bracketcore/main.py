import logging
import os
import subprocess
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bracketcore.database import init_db
from bracketcore.routes import brackets, rosters, runtime

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Bracket Engine API")


# Get build info
def get_build_info():
    """Get git commit hash or build timestamp"""
    try:
        # Try to get git commit hash
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=os.path.dirname(os.path.dirname(__file__)),
            capture_output=True,
            text=True,
            timeout=2,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass

    # Fallback to build timestamp
    return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = get_build_info()

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Runtime: match status, result reporting, advancement
app.include_router(runtime.router, prefix="/api", tags=["runtime"])

# Bracket-wide: conflicts, BYE resolution, podium, score validation
app.include_router(brackets.router, prefix="/api", tags=["brackets"])

# Team / pair formation
app.include_router(rosters.router, prefix="/api", tags=["rosters"])


@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("Bracket Engine API started (build %s)", BUILD_HASH)


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {"app_name": "Bracket Engine API", "build_hash": BUILD_HASH, "status": "healthy"}
