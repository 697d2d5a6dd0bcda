"""
Schemas Pydantic para HandoverThread e HandoverMessage.
"""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import Field

from bookrelay.models.enums import BookStatus, HandoverStatus
from bookrelay.schemas.base import BaseSchema, TimestampSchema


MAX_MESSAGE_LENGTH = 2000


class HandoverMessageCreate(BaseSchema):
    """Schema para envio de mensagem."""
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)


class HandoverMessageRead(BaseSchema):
    """Schema para leitura de mensagem."""
    id: UUID
    thread_id: UUID
    user_id: UUID
    message: str
    is_system_message: bool
    created_at: datetime


class HandoverThreadRead(TimestampSchema):
    """Schema para leitura de conversa de entrega."""
    id: UUID
    book_id: UUID
    current_holder_id: UUID
    next_holder_id: UUID
    reading_history_id: UUID | None = None
    previous_book_status: BookStatus | None = None
    status: HandoverStatus
    handover_due_date: datetime
    completed_at: datetime | None = None


class HandoverThreadDetail(HandoverThreadRead):
    """Conversa com título do livro e mensagens."""
    book_title: str
    messages: List[HandoverMessageRead] = []

    @classmethod
    def from_thread(cls, thread, messages=None) -> "HandoverThreadDetail":
        """Constrói a partir de um model HandoverThread."""
        if messages is None:
            messages = thread.messages or []
        return cls(
            id=thread.id,
            book_id=thread.book_id,
            current_holder_id=thread.current_holder_id,
            next_holder_id=thread.next_holder_id,
            reading_history_id=thread.reading_history_id,
            status=thread.status,
            handover_due_date=thread.handover_due_date,
            completed_at=thread.completed_at,
            created_at=thread.created_at,
            updated_at=thread.updated_at,
            book_title=thread.book.title if thread.book else "Unknown",
            messages=[HandoverMessageRead.model_validate(m) for m in messages],
        )
