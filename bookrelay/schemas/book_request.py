"""
Schemas Pydantic para BookRequest.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from bookrelay.models.enums import RequestStatus
from bookrelay.schemas.base import BaseSchema


class BookRequestCreate(BaseSchema):
    """Schema para criação de pedido."""
    book_id: UUID


class BookRequestRead(BaseSchema):
    """Schema para leitura de pedido."""
    id: UUID
    book_id: UUID
    user_id: UUID
    status: RequestStatus
    priority_score: float
    interest_match_score: float = 0.0
    distance_km: float | None = None
    requested_at: datetime
    processed_at: datetime | None = None
    due_date: datetime | None = None


class BookRequestDetail(BookRequestRead):
    """Schema com nomes do solicitante e do livro."""
    user_name: str
    book_title: str
    queue_position: int | None = Field(
        None,
        description="Posição na fila do livro (apenas para PENDING)",
    )

    @classmethod
    def from_request(
        cls,
        request,
        queue_position: int | None = None,
    ) -> "BookRequestDetail":
        """Constrói a partir de um model BookRequest."""
        return cls(
            id=request.id,
            book_id=request.book_id,
            user_id=request.user_id,
            status=request.status,
            priority_score=request.priority_score,
            interest_match_score=request.interest_match_score,
            distance_km=request.distance_km,
            requested_at=request.requested_at,
            processed_at=request.processed_at,
            due_date=request.due_date,
            user_name=request.user.name if request.user else "Unknown",
            book_title=request.book.title if request.book else "Unknown",
            queue_position=queue_position,
        )


class BookRequestReject(BaseSchema):
    """Schema para rejeição de pedido."""
    reason: str = Field("", max_length=500)


class BookRequestApprove(BaseSchema):
    """Schema para aprovação de pedido."""
    due_date: datetime | None = Field(
        None,
        description="Prazo da entrega (default: agora + DEFAULT_HANDOVER_DAYS)",
    )
