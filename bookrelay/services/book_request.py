"""
Service para lógica de negócio de BookRequest (fila de pedidos).

Regras de negócio:
    - No máximo um pedido PENDING por (livro, usuário)
    - Política de pedidos (REQUEST_POLICY):
        - available_only: livro precisa estar AVAILABLE ou ON_HOLD
        - any_status: qualquer status; a aprovação serializa
    - Quem está com o livro em mãos não pode pedi-lo
    - Prioridade calculada na criação (PriorityCalculator)
    - Fila: priority_score desc, requested_at asc
"""

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.core.config import get_settings
from bookrelay.core.exceptions import (
    AlreadyRequestedError,
    BookNotAvailableError,
    BookNotFoundError,
    RequestNotFoundError,
)
from bookrelay.core.logging import get_logger
from bookrelay.models.base import utcnow
from bookrelay.models.book_request import BookRequest
from bookrelay.models.enums import APPROVABLE_STATUSES, RequestStatus
from bookrelay.repositories.book import BookRepository
from bookrelay.repositories.book_request import BookRequestRepository
from bookrelay.repositories.user import UserRepository
from bookrelay.schemas.book_request import BookRequestDetail, BookRequestRead
from bookrelay.services.priority import PriorityCalculator

logger = get_logger(__name__)


class BookRequestService:
    """Service para operações da fila de pedidos."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.repo = BookRequestRepository(db)
        self.book_repo = BookRepository(db)
        self.user_repo = UserRepository(db)
        self.priority = PriorityCalculator(self.settings)

    async def submit(self, book_id: UUID, user_id: UUID) -> BookRequestRead:
        """
        Cria um pedido PENDING para o livro.

        Args:
            book_id: ID do livro
            user_id: ID do solicitante

        Returns:
            BookRequestRead do pedido criado

        Raises:
            BookNotFoundError: Livro não encontrado
            BookNotAvailableError: Status do livro não aceita pedidos
            AlreadyRequestedError: Já existe pedido pendente do usuário
        """
        book = await self.book_repo.get_by_id(book_id)
        if not book:
            raise BookNotFoundError()

        if book.current_holder_id == user_id:
            raise BookNotAvailableError("Você já está com este livro")

        if (
            not self.settings.allows_any_status_request
            and book.status not in APPROVABLE_STATUSES
        ):
            raise BookNotAvailableError(
                f"Livro com status {book.status.value} não aceita pedidos"
            )

        existing = await self.repo.get_pending_by_book_and_user(book_id, user_id)
        if existing:
            raise AlreadyRequestedError()

        user = await self.user_repo.get_by_id(user_id)
        breakdown = self.priority.calculate(user.success_score if user else None)

        request = BookRequest(
            book_id=book_id,
            user_id=user_id,
            status=RequestStatus.PENDING,
            priority_score=breakdown.score,
            interest_match_score=breakdown.interest,
            requested_at=utcnow(),
        )

        try:
            await self.repo.add(request)
            await self.db.commit()
        except IntegrityError:
            # Pedido concorrente do mesmo usuário venceu o índice único
            await self.db.rollback()
            raise AlreadyRequestedError()

        logger.info(
            f"Pedido criado: {request.id} (livro={book_id}, usuário={user_id}, "
            f"prioridade={breakdown.score})"
        )
        return BookRequestRead.model_validate(request)

    async def cancel(self, book_id: UUID, user_id: UUID) -> None:
        """
        Cancela (remove) o pedido PENDING do próprio usuário.

        Raises:
            RequestNotFoundError: Não há pedido pendente
        """
        deleted = await self.repo.delete_pending(book_id, user_id)
        if not deleted:
            await self.db.rollback()
            raise RequestNotFoundError("Você não possui pedido pendente para este livro")

        await self.db.commit()
        logger.info(f"Pedido cancelado (livro={book_id}, usuário={user_id})")

    async def rank_pending(self, book_id: UUID) -> list[BookRequestDetail]:
        """Fila de pedidos PENDING do livro, na ordem de atendimento."""
        requests = await self.repo.get_ranked(book_id, RequestStatus.PENDING)
        return [
            BookRequestDetail.from_request(request, queue_position=position)
            for position, request in enumerate(requests, start=1)
        ]

    async def get_user_requests(self, user_id: UUID) -> list[BookRequestRead]:
        """Lista pedidos de um usuário."""
        requests = await self.repo.get_by_user(user_id)
        return [BookRequestRead.model_validate(r) for r in requests]

    async def has_pending_request(self, book_id: UUID, user_id: UUID) -> bool:
        """Verifica se o usuário tem pedido pendente para o livro."""
        request = await self.repo.get_pending_by_book_and_user(book_id, user_id)
        return request is not None

    async def list_pending(
        self,
        limit: int = 100,
        offset: int = 0,
    ) -> list[BookRequestDetail]:
        """Fila geral de pedidos pendentes (administração)."""
        requests = await self.repo.get_pending(limit=limit, offset=offset)
        return [BookRequestDetail.from_request(r) for r in requests]
