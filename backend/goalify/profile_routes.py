"""Profile, goal and rank endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from .api_models import (
    ActivityRequest,
    GoalCompleteRequest,
    GoalCompletionResponse,
    GoalCreateRequest,
    GoalListResponse,
    GoalWriteResponse,
    ProfilePayload,
    ProfileUpdateRequest,
)
from .dependencies import get_leaderboard_service, get_reconciler, raise_http_error
from .errors import DurabilityFailure
from .gamification import GoalStats
from .leaderboard import LeaderboardService, UserRankSummary
from .leaderboard_routes import viewer_row
from .reconciler import Reconciler
from .stores import EntityKind
from .telemetry import emit_event

router = APIRouter(prefix="/api/profile", tags=["profile"])
logger = logging.getLogger(__name__)

_DOMAIN_ERRORS = (LookupError, ValueError, DurabilityFailure)


@router.get("/{user_id}", response_model=ProfilePayload, status_code=status.HTTP_200_OK)
def get_profile(
    user_id: str,
    name: Optional[str] = Query(default=None, max_length=120),
    reconciler: Reconciler = Depends(get_reconciler),
) -> ProfilePayload:
    try:
        profile = reconciler.ensure_profile(user_id, name=name)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    return ProfilePayload.build(profile, synced=not reconciler.has_pending(user_id, EntityKind.PROFILE))


@router.patch("/{user_id}", response_model=ProfilePayload, status_code=status.HTTP_200_OK)
def update_profile(
    user_id: str,
    request: ProfileUpdateRequest,
    reconciler: Reconciler = Depends(get_reconciler),
) -> ProfilePayload:
    try:
        changes = request.preference_changes()
        if changes:
            result = reconciler.update_preferences(user_id, **changes)
        if request.name is not None or not changes:
            result = reconciler.update_profile(user_id, name=request.name)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    emit_event("profile_updated", user_id=user_id, fields=sorted(request.model_dump(exclude_none=True)))
    return ProfilePayload.build(result.entity, synced=result.synced)


@router.post("/{user_id}/activity", response_model=ProfilePayload, status_code=status.HTTP_200_OK)
def record_activity(
    user_id: str,
    request: Optional[ActivityRequest] = None,
    reconciler: Reconciler = Depends(get_reconciler),
) -> ProfilePayload:
    try:
        result = reconciler.record_activity(user_id, now=request.occurred_at if request else None)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    return ProfilePayload.build(result.entity, synced=result.synced)


@router.get("/{user_id}/rank", response_model=UserRankSummary, status_code=status.HTTP_200_OK)
def get_user_rank(
    user_id: str,
    reconciler: Reconciler = Depends(get_reconciler),
    service: LeaderboardService = Depends(get_leaderboard_service),
) -> UserRankSummary:
    try:
        viewer = viewer_row(reconciler, user_id)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    return service.user_rank(user_id.strip(), viewer=viewer)


@router.get("/{user_id}/goals", response_model=GoalListResponse, status_code=status.HTTP_200_OK)
def list_goals(
    user_id: str,
    session_id: Optional[str] = Query(default=None),
    include_completed: bool = Query(default=True),
    reconciler: Reconciler = Depends(get_reconciler),
) -> GoalListResponse:
    try:
        goals = reconciler.list_goals(user_id, session_id=session_id, include_completed=include_completed)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    return GoalListResponse(goals=goals)


@router.post("/{user_id}/goals", response_model=GoalWriteResponse, status_code=status.HTTP_201_CREATED)
def create_goal(
    user_id: str,
    request: GoalCreateRequest,
    reconciler: Reconciler = Depends(get_reconciler),
) -> GoalWriteResponse:
    try:
        result = reconciler.create_goal(
            user_id,
            request.description,
            difficulty=request.difficulty,
            motivation=request.motivation,
            deadline=request.deadline,
            session_id=request.session_id,
        )
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    return GoalWriteResponse(goal=result.entity, synced=result.synced)


@router.post(
    "/{user_id}/goals/{goal_id}/complete",
    response_model=GoalCompletionResponse,
    status_code=status.HTTP_200_OK,
)
def complete_goal(
    user_id: str,
    goal_id: str,
    request: GoalCompleteRequest,
    reconciler: Reconciler = Depends(get_reconciler),
) -> GoalCompletionResponse:
    try:
        result = reconciler.complete_goal(user_id, goal_id, request.reasoning)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    logger.info("Goal %s completed for %s (+%d XP, synced=%s)", goal_id, user_id, result.xp_awarded, result.synced)
    return GoalCompletionResponse(
        goal=result.goal,
        profile=ProfilePayload.build(result.profile, synced=result.synced),
        xp_awarded=result.xp_awarded,
        synced=result.synced,
    )


@router.get("/{user_id}/goals/stats", response_model=GoalStats, status_code=status.HTTP_200_OK)
def goal_stats(user_id: str, reconciler: Reconciler = Depends(get_reconciler)) -> GoalStats:
    try:
        return reconciler.goal_stats(user_id)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)


__all__ = ["router"]
