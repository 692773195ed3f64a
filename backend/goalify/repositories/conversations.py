"""Database-backed conversation and message repository."""

from __future__ import annotations

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import ConversationModel, MessageModel
from ..entities import Conversation, Message, as_utc
from .profiles import ensure_stats


class ConversationRepository:
    def list(self, session: Session, user_id: str) -> List[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(ConversationModel.user_id == user_id)
            .order_by(ConversationModel.updated_at.desc(), ConversationModel.id)
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars()]

    def upsert(self, session: Session, user_id: str, conversation: Conversation) -> Conversation:
        model = session.get(ConversationModel, conversation.id)
        if model is None:
            model = ConversationModel(id=conversation.id, user_id=user_id, created_at=conversation.created_at)
            session.add(model)
            ensure_stats(session, user_id).total_sessions += 1
        elif model.user_id != user_id:
            raise LookupError(f"Conversation '{conversation.id}' was not found.")

        model.title = conversation.title
        model.completed = conversation.completed
        model.category = conversation.category
        model.ai_label = conversation.ai_label
        model.soft_deleted = conversation.soft_deleted
        model.updated_at = conversation.updated_at
        session.flush()
        return self._to_domain(model)

    def soft_delete(self, session: Session, user_id: str, conversation_id: str) -> Conversation:
        model = self._require(session, user_id, conversation_id)
        model.soft_deleted = True
        session.flush()
        return self._to_domain(model)

    def list_messages(self, session: Session, user_id: str, conversation_id: str) -> List[Message]:
        self._require(session, user_id, conversation_id)
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at, MessageModel.id)
        )
        return [self._message_to_domain(model) for model in session.execute(stmt).scalars()]

    def append_message(self, session: Session, user_id: str, message: Message) -> Message:
        conversation = self._require(session, user_id, message.conversation_id)
        existing = session.get(MessageModel, message.id)
        if existing is not None:
            return self._message_to_domain(existing)

        model = MessageModel(
            id=message.id,
            conversation_id=message.conversation_id,
            role=message.role,
            content=message.content,
            is_voice=message.is_voice,
            created_at=message.timestamp,
        )
        session.add(model)
        current = as_utc(conversation.updated_at)
        if current is None or message.timestamp > current:
            conversation.updated_at = message.timestamp
        session.flush()
        return self._message_to_domain(model)

    @staticmethod
    def _require(session: Session, user_id: str, conversation_id: str) -> ConversationModel:
        model = session.get(ConversationModel, conversation_id)
        if model is None or model.user_id != user_id:
            raise LookupError(f"Conversation '{conversation_id}' was not found.")
        return model

    @staticmethod
    def _to_domain(model: ConversationModel) -> Conversation:
        return Conversation(
            id=model.id,
            title=model.title,
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
            completed=model.completed,
            category=model.category,  # type: ignore[arg-type]
            ai_label=model.ai_label,
            soft_deleted=model.soft_deleted,
        )

    @staticmethod
    def _message_to_domain(model: MessageModel) -> Message:
        return Message(
            id=model.id,
            conversation_id=model.conversation_id,
            role=model.role,  # type: ignore[arg-type]
            content=model.content,
            timestamp=as_utc(model.created_at),
            is_voice=model.is_voice,
        )


conversations = ConversationRepository()

__all__ = ["ConversationRepository", "conversations"]
