"""Coaching conversation and message endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status

from .api_models import (
    ConversationListResponse,
    ConversationStartRequest,
    ConversationStartResponse,
    ConversationWriteResponse,
    MessageAppendRequest,
    MessageListResponse,
    MessageWriteResponse,
)
from .dependencies import get_reconciler, raise_http_error
from .errors import DurabilityFailure
from .reconciler import Reconciler

router = APIRouter(prefix="/api/session", tags=["session"])
logger = logging.getLogger(__name__)

_DOMAIN_ERRORS = (LookupError, ValueError, DurabilityFailure)


@router.get(
    "/{user_id}/conversations",
    response_model=ConversationListResponse,
    status_code=status.HTTP_200_OK,
)
def list_conversations(
    user_id: str,
    include_deleted: bool = Query(default=False),
    reconciler: Reconciler = Depends(get_reconciler),
) -> ConversationListResponse:
    try:
        conversations = reconciler.list_conversations(user_id, include_deleted=include_deleted)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    return ConversationListResponse(conversations=conversations)


@router.post(
    "/{user_id}/conversations",
    response_model=ConversationStartResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_conversation(
    user_id: str,
    request: ConversationStartRequest,
    reconciler: Reconciler = Depends(get_reconciler),
) -> ConversationStartResponse:
    try:
        conversation, message = reconciler.start_conversation(
            user_id,
            request.message,
            category=request.category,
            is_voice=request.is_voice,
        )
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    return ConversationStartResponse(
        conversation=conversation.entity,
        message=message.entity,
        synced=conversation.synced and message.synced,
    )


@router.delete(
    "/{user_id}/conversations/{conversation_id}",
    response_model=ConversationWriteResponse,
    status_code=status.HTTP_200_OK,
)
def delete_conversation(
    user_id: str,
    conversation_id: str,
    reconciler: Reconciler = Depends(get_reconciler),
) -> ConversationWriteResponse:
    try:
        result = reconciler.soft_delete_conversation(user_id, conversation_id)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    logger.info("Conversation %s soft-deleted for %s", conversation_id, user_id)
    return ConversationWriteResponse(conversation=result.entity, synced=result.synced)


@router.get(
    "/{user_id}/conversations/{conversation_id}/messages",
    response_model=MessageListResponse,
    status_code=status.HTTP_200_OK,
)
def list_messages(
    user_id: str,
    conversation_id: str,
    reconciler: Reconciler = Depends(get_reconciler),
) -> MessageListResponse:
    try:
        messages = reconciler.list_messages(user_id, conversation_id)
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    return MessageListResponse(messages=messages)


@router.post(
    "/{user_id}/conversations/{conversation_id}/messages",
    response_model=MessageWriteResponse,
    status_code=status.HTTP_201_CREATED,
)
def append_message(
    user_id: str,
    conversation_id: str,
    request: MessageAppendRequest,
    reconciler: Reconciler = Depends(get_reconciler),
) -> MessageWriteResponse:
    try:
        result = reconciler.append_message(
            user_id,
            conversation_id,
            request.role,
            request.content,
            is_voice=request.is_voice,
            message_id=request.id,
        )
    except _DOMAIN_ERRORS as exc:
        raise_http_error(exc)
    return MessageWriteResponse(message=result.entity, synced=result.synced)


__all__ = ["router"]
