"""Lazily constructed services shared by the HTTP routers."""

from __future__ import annotations

import logging
from typing import NoReturn, Optional

from fastapi import HTTPException, status

from .cache import LocalCacheStore
from .config import get_settings
from .errors import DurabilityFailure
from .gateway import RemoteGateway, build_gateway
from .leaderboard import LeaderboardService
from .reconciler import Reconciler

logger = logging.getLogger(__name__)

_gateway: Optional[RemoteGateway] = None
_reconciler: Optional[Reconciler] = None
_leaderboard: Optional[LeaderboardService] = None


def get_gateway() -> RemoteGateway:
    global _gateway
    if _gateway is None:
        _gateway = build_gateway(get_settings())
        logger.info("Remote gateway initialised: %s", type(_gateway).__name__)
    return _gateway


def get_reconciler() -> Reconciler:
    global _reconciler
    if _reconciler is None:
        _reconciler = Reconciler(LocalCacheStore(get_settings().cache_dir), get_gateway())
    return _reconciler


def get_leaderboard_service() -> LeaderboardService:
    global _leaderboard
    if _leaderboard is None:
        _leaderboard = LeaderboardService(get_gateway(), default_limit=get_settings().leaderboard_limit)
    return _leaderboard


def reset_services() -> None:
    global _gateway, _reconciler, _leaderboard
    _gateway = None
    _reconciler = None
    _leaderboard = None


def raise_http_error(exc: Exception) -> NoReturn:
    """Translate a domain exception into the matching HTTP error."""
    if isinstance(exc, DurabilityFailure):
        logger.error("Local cache write failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if isinstance(exc, LookupError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc).strip("'\"")) from exc
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    raise exc


__all__ = [
    "get_gateway",
    "get_leaderboard_service",
    "get_reconciler",
    "raise_http_error",
    "reset_services",
]
