import logging
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .db.monitoring import get_pool_snapshot
from .db.session import get_engine
from .dependencies import get_gateway
from .errors import GatewayError
from .gateway import RemoteGateway
from .leaderboard_routes import router as leaderboard_router
from .logging_config import configure_logging
from .profile_routes import router as profile_router
from .session_routes import router as session_router


configure_logging()
logger = logging.getLogger(__name__)
app = FastAPI(title="Goalify Backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(profile_router)
app.include_router(session_router)
app.include_router(leaderboard_router)

settings_snapshot = get_settings()
logger.info("Backend starting in %s persistence mode", settings_snapshot.persistence_mode)
logger.info("Database URL configured: %s", bool(settings_snapshot.database_url))
logger.info("Local cache directory: %s", settings_snapshot.cache_dir)


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "persistence_mode": settings.persistence_mode}


@app.get("/healthz/database")
def database_health(
    settings: Settings = Depends(get_settings),
    gateway: RemoteGateway = Depends(get_gateway),
) -> Dict[str, Any]:
    try:
        gateway.ping()
    except GatewayError as exc:
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.detail) from exc
    return {
        "status": "ok",
        "persistence_mode": settings.persistence_mode,
        "pool": get_pool_snapshot(get_engine()),
    }
