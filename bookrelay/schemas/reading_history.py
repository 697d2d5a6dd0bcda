"""
Schemas Pydantic para ReadingHistory.
"""

from datetime import datetime
from uuid import UUID

from bookrelay.models.enums import BookStatus, DeliveryStatus
from bookrelay.schemas.base import BaseSchema


class ReadingHistoryRead(BaseSchema):
    """Schema para leitura de uma entrada do histórico."""
    id: UUID
    book_id: UUID
    reader_id: UUID
    start_date: datetime
    end_date: datetime | None = None
    due_date: datetime | None = None
    is_completed: bool
    completed_at: datetime | None = None
    next_reader_id: UUID | None = None
    delivery_status: DeliveryStatus
    marked_delivered_at: datetime | None = None


class ReadingStatus(BaseSchema):
    """
    Situação de um livro do ponto de vista de um usuário.

    Usado pela tela do livro para decidir quais ações mostrar
    (concluir leitura, confirmar recebimento, abrir conversa).
    """
    book_id: UUID
    book_status: BookStatus
    is_current_holder: bool
    is_next_holder: bool
    active_history: ReadingHistoryRead | None = None
    active_thread_id: UUID | None = None
