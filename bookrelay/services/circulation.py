"""
Service da circulação: aprovação/rejeição de pedidos e devolução.

Regras de negócio:
    - Book.status e Book.current_holder_id mudam juntos, num único UPDATE
      condicional ao status esperado
    - Aprovar um pedido rejeita em cascata todos os outros pendentes do livro
    - Livro AVAILABLE/ON_HOLD: aprovação abre a conversa de entrega
      (portador físico -> solicitante) e o livro vai para REQUESTED
    - Livro READING (só alcançável com REQUEST_POLICY=any_status): o pedido
      é aprovado e fica na fila; a varredura de vencimentos abre a conversa
    - Livro REQUESTED/RESERVED: aprovação negada

Fluxo de approve():
    1. Transação principal (um commit): pedido PENDING -> APPROVED,
       livro -> REQUESTED, conversa ACTIVE criada
    2. Efeitos best-effort: rejeição em cascata, mensagem de sistema,
       notificações, contador books_received
"""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.core.config import get_settings
from bookrelay.core.exceptions import (
    BookNotAvailableError,
    BookNotFoundError,
    CannotDetermineHolderError,
    InvalidStateError,
    NotCurrentHolderError,
    RequestNotFoundError,
)
from bookrelay.core.logging import get_logger
from bookrelay.core.side_effects import best_effort
from bookrelay.models.base import utcnow
from bookrelay.models.book import Book
from bookrelay.models.book_request import BookRequest
from bookrelay.models.enums import (
    APPROVABLE_STATUSES,
    BookStatus,
    HELD_STATUSES,
    RequestStatus,
)
from bookrelay.repositories.book import BookRepository
from bookrelay.repositories.book_request import BookRequestRepository
from bookrelay.repositories.handover import HandoverRepository
from bookrelay.repositories.reading_history import ReadingHistoryRepository
from bookrelay.repositories.user import UserRepository
from bookrelay.schemas.book_request import BookRequestRead
from bookrelay.schemas.circulation import ApprovalResult, ReturnResult
from bookrelay.services.handover import HandoverService
from bookrelay.services.notification import NotificationService

logger = get_logger(__name__)


class CirculationService:
    """Service para as transições de estado do livro."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.book_repo = BookRepository(db)
        self.request_repo = BookRequestRepository(db)
        self.history_repo = ReadingHistoryRepository(db)
        self.handover_repo = HandoverRepository(db)
        self.user_repo = UserRepository(db)
        self.handover = HandoverService(db)
        self.notifier = NotificationService(db)

    # ==========================================
    # Aprovação
    # ==========================================

    async def approve(
        self,
        request_id: UUID,
        due_date: datetime | None = None,
    ) -> ApprovalResult:
        """
        Aprova um pedido PENDING.

        Args:
            request_id: ID do pedido
            due_date: Prazo da entrega (default: agora + DEFAULT_HANDOVER_DAYS)

        Returns:
            ApprovalResult

        Raises:
            RequestNotFoundError: Pedido não encontrado
            InvalidStateError: Pedido já processado ou aprovação concorrente venceu
            BookNotAvailableError: Livro em status que não aceita aprovação
            CannotDetermineHolderError: Livro sem criador e sem histórico concluído
        """
        request = await self.request_repo.get_with_relations(request_id)
        if not request:
            raise RequestNotFoundError()

        if request.status != RequestStatus.PENDING:
            raise InvalidStateError(
                f"Pedido com status {request.status.value} não pode ser aprovado"
            )

        now = utcnow()
        if due_date is None:
            due_date = now + timedelta(days=self.settings.DEFAULT_HANDOVER_DAYS)

        # Serializa aprovações concorrentes do mesmo livro
        book = await self.book_repo.get_for_update(request.book_id)
        if not book:
            await self.db.rollback()
            raise BookNotFoundError()

        if book.status in APPROVABLE_STATUSES:
            return await self._approve_with_handover(request, book, due_date, now)

        if book.status == BookStatus.READING:
            return await self._approve_queued(request, book, due_date, now)

        detail = f"Livro com status {book.status.value} não pode ter pedido aprovado"
        await self.db.rollback()
        raise BookNotAvailableError(detail)

    async def _approve_with_handover(
        self,
        request: BookRequest,
        book: Book,
        due_date: datetime,
        now: datetime,
    ) -> ApprovalResult:
        """Aprova e abre a conversa portador -> solicitante."""
        try:
            holder_id = await self.resolve_current_holder(book)
        except CannotDetermineHolderError:
            await self.db.rollback()
            raise

        if holder_id == request.user_id:
            await self.db.rollback()
            raise InvalidStateError("O solicitante já está com o livro")

        previous_status = book.status

        approved = await self.request_repo.resolve_pending(
            request.id,
            RequestStatus.APPROVED,
            processed_at=now,
            due_date=due_date,
        )
        if not approved:
            await self.db.rollback()
            raise InvalidStateError("Pedido já foi processado")

        moved = await self.book_repo.transition(
            book.id,
            expected=[previous_status],
            status=BookStatus.REQUESTED,
            holder_id=None,
        )
        if not moved:
            await self.db.rollback()
            raise InvalidStateError("Status do livro mudou durante a aprovação")

        try:
            thread = await self.handover_repo.open(
                book_id=book.id,
                current_holder_id=holder_id,
                next_holder_id=request.user_id,
                handover_due_date=due_date,
                previous_book_status=previous_status,
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise InvalidStateError("Já existe uma conversa de entrega ativa para este livro")

        logger.info(
            f"Pedido {request.id} aprovado: livro {book.id} -> REQUESTED, "
            f"conversa {thread.id} ({holder_id} -> {request.user_id})"
        )

        # Montado antes dos efeitos: rollback em um deles expira os objetos da sessão
        result = ApprovalResult(
            request=BookRequestRead.model_validate(request),
            book_status=BookStatus.REQUESTED,
            thread_id=thread.id,
            current_holder_id=holder_id,
            message="Pedido aprovado. Conversa de entrega aberta.",
        )
        book_id, book_title = book.id, book.title
        requester_id = request.user_id

        result.rejected_count = await self._reject_others(book_id, result.request.id, now)

        await self.handover.announce_thread(
            thread_id=result.thread_id,
            current_holder_id=holder_id,
            next_holder_id=requester_id,
            book_id=book_id,
            book_title=book_title,
            text=(
                f"Conversa de entrega criada. Combine a entrega de \"{book_title}\" "
                f"ao próximo leitor. Prazo: {due_date.strftime('%d/%m/%Y')}"
            ),
        )
        await self._after_approval(requester_id, book_id, book_title)
        return result

    async def _approve_queued(
        self,
        request: BookRequest,
        book: Book,
        due_date: datetime,
        now: datetime,
    ) -> ApprovalResult:
        """Aprova pedido para livro em leitura; a conversa fica para a varredura."""
        approved = await self.request_repo.resolve_pending(
            request.id,
            RequestStatus.APPROVED,
            processed_at=now,
            due_date=due_date,
        )
        if not approved:
            await self.db.rollback()
            raise InvalidStateError("Pedido já foi processado")

        await self.db.commit()
        logger.info(f"Pedido {request.id} aprovado e na fila do leitor atual (livro {book.id})")

        result = ApprovalResult(
            request=BookRequestRead.model_validate(request),
            book_status=book.status,
            thread_id=None,
            current_holder_id=book.current_holder_id,
            message="Pedido aprovado. A entrega será combinada perto do fim da leitura atual.",
        )
        book_id, book_title = book.id, book.title
        requester_id = request.user_id

        result.rejected_count = await self._reject_others(book_id, result.request.id, now)
        await self._after_approval(requester_id, book_id, book_title)
        return result

    async def _reject_others(
        self,
        book_id: UUID,
        approved_request_id: UUID,
        now: datetime,
    ) -> int:
        """Rejeita os demais pedidos pendentes, um a um, sem propagar falhas."""
        other_ids = await self.request_repo.get_other_pending_ids(book_id, approved_request_id)

        rejected = 0
        for other_id in other_ids:
            if await best_effort(
                self._reject_one(other_id, now),
                f"rejeitar pedido {other_id} em cascata",
                session=self.db,
            ):
                rejected += 1
        return rejected

    async def _reject_one(self, request_id: UUID, now: datetime) -> None:
        changed = await self.request_repo.resolve_pending(
            request_id,
            RequestStatus.REJECTED,
            processed_at=now,
        )
        if not changed:
            raise InvalidStateError(f"Pedido {request_id} não está mais pendente")
        await self.db.commit()

    async def _after_approval(
        self,
        requester_id: UUID,
        book_id: UUID,
        book_title: str,
    ) -> None:
        """Notificação ao solicitante e contador de livros recebidos."""
        await best_effort(
            self.notifier.notify_request_approved(requester_id, book_id, book_title),
            "notificar aprovação do pedido",
            session=self.db,
        )
        await best_effort(
            self._increment_books_received(requester_id),
            "incrementar livros recebidos",
            session=self.db,
        )

    async def _increment_books_received(self, user_id: UUID) -> None:
        await self.user_repo.increment_books_received(user_id)
        await self.db.commit()

    # ==========================================
    # Rejeição
    # ==========================================

    async def reject(self, request_id: UUID, reason: str = "") -> BookRequestRead:
        """
        Rejeita um pedido PENDING. O motivo vai apenas para o log.

        Raises:
            RequestNotFoundError: Pedido não encontrado
            InvalidStateError: Pedido já processado
        """
        request = await self.request_repo.get_by_id(request_id)
        if not request:
            raise RequestNotFoundError()

        if request.status != RequestStatus.PENDING:
            raise InvalidStateError(
                f"Pedido com status {request.status.value} não pode ser rejeitado"
            )

        changed = await self.request_repo.resolve_pending(
            request_id,
            RequestStatus.REJECTED,
            processed_at=utcnow(),
        )
        if not changed:
            await self.db.rollback()
            raise InvalidStateError("Pedido já foi processado")

        await self.db.commit()
        logger.info(f"Pedido {request_id} rejeitado. Motivo: {reason or '-'}")
        return BookRequestRead.model_validate(request)

    # ==========================================
    # Portador atual
    # ==========================================

    async def resolve_current_holder(self, book: Book) -> UUID:
        """
        Determina quem está fisicamente com o livro.

        Ordem:
            1. current_holder_id (livro em READING/ON_HOLD)
            2. leitor do histórico concluído mais recente
            3. created_by (livro nunca lido)

        Raises:
            CannotDetermineHolderError: Nenhuma das fontes disponível
        """
        if book.current_holder_id is not None:
            return book.current_holder_id

        last = await self.history_repo.get_last_completed(book.id)
        if last:
            return last.reader_id

        if book.created_by is not None:
            return book.created_by

        logger.error(f"Livro {book.id} sem criador e sem histórico concluído")
        raise CannotDetermineHolderError()

    async def get_books_on_hold(self, user_id: UUID) -> list[Book]:
        """Livros concluídos que continuam com o usuário."""
        return await self.book_repo.get_by_holder(user_id, BookStatus.ON_HOLD)

    # ==========================================
    # Devolução definitiva
    # ==========================================

    async def return_book(self, book_id: UUID, user_id: UUID) -> ReturnResult:
        """
        Devolução definitiva: READING/ON_HOLD -> AVAILABLE, sem portador.

        O período ativo (se houver) é concluído e fechado na mesma transação.

        Raises:
            BookNotFoundError: Livro não encontrado
            NotCurrentHolderError: Usuário não é o portador atual
            InvalidStateError: Há próximo leitor definido, conversa ativa ou
                pedido aprovado ainda não atendido
        """
        book = await self.book_repo.get_for_update(book_id)
        if not book:
            await self.db.rollback()
            raise BookNotFoundError()

        if book.current_holder_id != user_id:
            await self.db.rollback()
            raise NotCurrentHolderError()

        active_thread = await self.handover_repo.get_active_by_book(book_id)
        history = await self.history_repo.get_active_by_book(book_id)
        if active_thread or (history and history.has_next_reader):
            await self.db.rollback()
            raise InvalidStateError("Há um próximo leitor aguardando este livro")

        queued = await self.request_repo.get_next_approved(book_id, exclude_user_id=user_id)
        if queued:
            await self.db.rollback()
            raise InvalidStateError("Há um pedido aprovado aguardando este livro")

        now = utcnow()
        if history:
            if not history.is_completed:
                await self.history_repo.mark_completed(history.id, now)
            await self.history_repo.close(history.id, now)

        moved = await self.book_repo.transition(
            book_id,
            expected=HELD_STATUSES,
            status=BookStatus.AVAILABLE,
            holder_id=None,
        )
        if not moved:
            await self.db.rollback()
            raise InvalidStateError("Status do livro mudou durante a devolução")

        await self.db.commit()
        logger.info(f"Livro {book_id} devolvido por {user_id}")

        return ReturnResult(
            book_id=book_id,
            reading_history_id=history.id if history else None,
            book_status=BookStatus.AVAILABLE,
            returned_at=now,
            message="Livro devolvido com sucesso",
        )
