"""
Schemas de resultado das transições de circulação.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from bookrelay.models.enums import BookStatus, DeliveryStatus
from bookrelay.schemas.base import BaseSchema
from bookrelay.schemas.book_request import BookRequestRead


class ApprovalResult(BaseSchema):
    """Resultado da aprovação de um pedido."""
    request: BookRequestRead
    book_status: BookStatus
    thread_id: UUID | None = Field(
        None,
        description="Conversa aberta (None se o pedido ficou na fila do leitor atual)",
    )
    current_holder_id: UUID | None = None
    rejected_count: int = 0
    message: str


class CompletionResult(BaseSchema):
    """Resultado de 'concluí a leitura'."""
    book_id: UUID
    reading_history_id: UUID
    book_status: BookStatus
    delivery_status: DeliveryStatus
    next_reader_id: UUID | None = None
    recovered: bool = Field(
        False,
        description="True se o histórico ativo foi recriado pelo caminho de recuperação",
    )
    message: str


class DeliveryResult(BaseSchema):
    """Resultado de 'recebi o livro'."""
    book_id: UUID
    thread_id: UUID
    reading_history_id: UUID
    previous_holder_id: UUID | None = None
    book_status: BookStatus
    message: str


class ReturnResult(BaseSchema):
    """Resultado da devolução definitiva."""
    book_id: UUID
    reading_history_id: UUID | None = None
    book_status: BookStatus
    returned_at: datetime
    message: str


class DueSoonScanResult(BaseSchema):
    """Resultado de uma varredura de vencimentos próximos."""
    scanned: int = 0
    threads_created: int = 0
    skipped_no_request: int = 0
    skipped_active_thread: int = 0
    skipped_already_assigned: int = 0
    errors: int = 0
    locked: bool = Field(
        False,
        description="True se a varredura não rodou porque outra instância detinha o lock",
    )
    message: str = ""
