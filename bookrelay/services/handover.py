"""
Service da negociação de entrega entre o portador atual e o próximo.

Regras de negócio:
    - Só current_holder_id e next_holder_id de uma conversa podem agir nela
    - "Concluí a leitura" (mark_completed) é do leitor ativo
        - com próximo leitor: entrega IN_TRANSIT, período continua aberto
        - sem próximo leitor: período fechado, livro ON_HOLD com o mesmo
          portador, conversa ativa (se houver) COMPLETED
    - "Recebi o livro" (mark_delivered) é do próximo portador
        - primeira entrega (sem período ativo): novo período, livro READING
        - entre leitores: período anterior DELIVERED e fechado, novo período
    - Mensagens só são incluídas, nunca editadas; ordem por created_at

Caminho de recuperação:
    mark_completed sem período ativo recria o período para o portador
    registrado do livro (dados legados), exceto se o último período concluído
    do livro já é desse usuário.
"""

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.core.exceptions import (
    ActiveReadingExistsError,
    AlreadyCompletedByThisUserError,
    AlreadyCompletedError,
    AlreadyDeliveredError,
    BookNotFoundError,
    CirculationError,
    InvalidStateError,
    NoActiveThreadError,
    NotCurrentHolderError,
    NotNextHolderError,
    NotParticipantError,
    ThreadNotFoundError,
)
from bookrelay.core.logging import get_logger
from bookrelay.core.side_effects import best_effort
from bookrelay.models.base import utcnow
from bookrelay.models.book import Book
from bookrelay.models.enums import (
    BookStatus,
    DeliveryStatus,
    HELD_STATUSES,
    HandoverStatus,
)
from bookrelay.repositories.book import BookRepository
from bookrelay.repositories.book_request import BookRequestRepository
from bookrelay.repositories.handover import HandoverRepository
from bookrelay.repositories.reading_history import ReadingHistoryRepository
from bookrelay.schemas.circulation import CompletionResult, DeliveryResult
from bookrelay.schemas.handover import (
    MAX_MESSAGE_LENGTH,
    HandoverMessageRead,
    HandoverThreadDetail,
    HandoverThreadRead,
)
from bookrelay.schemas.reading_history import ReadingHistoryRead, ReadingStatus
from bookrelay.services.notification import NotificationService
from bookrelay.services.reading_history import reading_due_date

logger = get_logger(__name__)

COMPLETED_ON_HOLD_MESSAGE = (
    "Leitura concluída. O livro fica com o leitor até o próximo pedido."
)
DELIVERED_MESSAGE = "Livro entregue e recebido com sucesso!"
CANCELLED_MESSAGE = "Conversa de entrega cancelada."


class HandoverService:
    """Service para a negociação de entrega."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = HandoverRepository(db)
        self.history_repo = ReadingHistoryRepository(db)
        self.book_repo = BookRepository(db)
        self.request_repo = BookRequestRepository(db)
        self.notifier = NotificationService(db)

    # ==========================================
    # Concluir leitura
    # ==========================================

    async def mark_completed(self, user_id: UUID, book_id: UUID) -> CompletionResult:
        """
        O leitor atual informa que terminou a leitura.

        Raises:
            BookNotFoundError: Livro não encontrado
            NotCurrentHolderError: Usuário não é o leitor ativo
            AlreadyCompletedError: Leitura já concluída
            AlreadyCompletedByThisUserError: Recuperação negada, usuário já
                concluiu este livro
        """
        book = await self.book_repo.get_by_id(book_id)
        if not book:
            raise BookNotFoundError()

        book_status, book_title = book.status, book.title
        history = await self.history_repo.get_active_by_book(book_id)
        recovered = False

        if history is None:
            history = await self._recover_active_history(book, user_id)
            recovered = True

        if history.reader_id != user_id:
            await self.db.rollback()
            raise NotCurrentHolderError()

        if history.is_completed:
            await self.db.rollback()
            raise AlreadyCompletedError()

        now = utcnow()

        if history.has_next_reader:
            completed = await self.history_repo.mark_completed(
                history.id,
                now,
                delivery_status=DeliveryStatus.IN_TRANSIT,
            )
            if not completed:
                await self.db.rollback()
                raise AlreadyCompletedError()

            await self.db.commit()
            result = CompletionResult(
                book_id=book_id,
                reading_history_id=history.id,
                book_status=book_status,
                delivery_status=DeliveryStatus.IN_TRANSIT,
                next_reader_id=history.next_reader_id,
                recovered=recovered,
                message="Leitura concluída. Combine a entrega com o próximo leitor.",
            )
            logger.info(
                f"Leitura concluída: livro={book_id}, leitor={user_id}, "
                f"a caminho de {result.next_reader_id}"
            )

            await best_effort(
                self.notifier.notify_book_in_transit(
                    result.next_reader_id,
                    book_id,
                    book_title,
                ),
                "notificar livro a caminho",
                session=self.db,
            )
            return result

        # Sem próximo leitor: fecha o período e o livro fica em espera
        completed = await self.history_repo.mark_completed(history.id, now)
        if not completed:
            await self.db.rollback()
            raise AlreadyCompletedError()

        await self.history_repo.close(history.id, now)

        moved = await self.book_repo.transition(
            book_id,
            expected=HELD_STATUSES,
            status=BookStatus.ON_HOLD,
            holder_id=user_id,
        )
        if not moved:
            await self.db.rollback()
            raise InvalidStateError(
                f"Livro com status {book_status.value} não pode ficar em espera"
            )

        thread = await self.repo.get_active_by_book(book_id)
        if thread:
            await self.repo.close(thread.id, HandoverStatus.COMPLETED, now)

        await self.db.commit()
        logger.info(f"Leitura concluída: livro={book_id}, leitor={user_id}, livro em espera")

        result = CompletionResult(
            book_id=book_id,
            reading_history_id=history.id,
            book_status=BookStatus.ON_HOLD,
            delivery_status=history.delivery_status,
            next_reader_id=None,
            recovered=recovered,
            message="Leitura concluída. O livro fica com você até o próximo pedido.",
        )
        if thread:
            await best_effort(
                self._post_system_message(thread.id, user_id, COMPLETED_ON_HOLD_MESSAGE),
                "registrar mensagem de sistema",
                session=self.db,
            )
        return result

    async def _recover_active_history(self, book: Book, user_id: UUID):
        """
        Recria o período ativo ausente (dados legados).

        Só vale para o portador registrado do livro, e nunca para quem já é
        o autor do último período concluído.
        """
        last = await self.history_repo.get_last_completed(book.id)
        if last and last.reader_id == user_id:
            raise AlreadyCompletedByThisUserError()

        if book.current_holder_id != user_id:
            raise NotCurrentHolderError()

        logger.warning(
            f"Livro {book.id} sem período de leitura ativo; recriando para {user_id}"
        )

        now = utcnow()
        try:
            return await self.history_repo.start(
                book.id,
                user_id,
                start_date=now,
                due_date=reading_due_date(book, now),
            )
        except IntegrityError:
            await self.db.rollback()
            raise ActiveReadingExistsError()

    # ==========================================
    # Confirmar recebimento
    # ==========================================

    async def mark_delivered(self, user_id: UUID, book_id: UUID) -> DeliveryResult:
        """
        O próximo portador confirma que recebeu o livro.

        Raises:
            NoActiveThreadError: Não há conversa ativa para o livro
            NotNextHolderError: Usuário não é o próximo portador
            AlreadyDeliveredError: Entrega já confirmada
            BookNotFoundError: Livro não encontrado
        """
        thread = await self.repo.get_active_by_book(book_id)
        if not thread:
            raise NoActiveThreadError()

        if thread.next_holder_id != user_id:
            raise NotNextHolderError()

        book = await self.book_repo.get_by_id(book_id)
        if not book:
            raise BookNotFoundError()

        book_status, book_title = book.status, book.title
        history = await self.history_repo.get_active_by_book(book_id)
        now = utcnow()

        if history is None:
            # Primeira entrega: livro sai de REQUESTED
            expected = (BookStatus.REQUESTED,)
            previous_holder_id = thread.current_holder_id
        else:
            if history.delivery_status == DeliveryStatus.DELIVERED:
                raise AlreadyDeliveredError()

            delivered = await self.history_repo.mark_delivered(history.id, now)
            if not delivered:
                await self.db.rollback()
                raise AlreadyDeliveredError()

            expected = (BookStatus.READING,)
            previous_holder_id = history.reader_id

        try:
            new_history = await self.history_repo.start(
                book_id,
                user_id,
                start_date=now,
                due_date=reading_due_date(book, now),
            )
        except IntegrityError:
            await self.db.rollback()
            raise ActiveReadingExistsError()

        moved = await self.book_repo.transition(
            book_id,
            expected=expected,
            status=BookStatus.READING,
            holder_id=user_id,
        )
        if not moved:
            await self.db.rollback()
            raise InvalidStateError(
                f"Livro com status {book_status.value} não pode ser entregue"
            )

        closed = await self.repo.close(thread.id, HandoverStatus.COMPLETED, now)
        if not closed:
            await self.db.rollback()
            raise NoActiveThreadError()

        await self.db.commit()
        logger.info(
            f"Entrega confirmada: livro={book_id}, {previous_holder_id} -> {user_id}"
        )

        result = DeliveryResult(
            book_id=book_id,
            thread_id=thread.id,
            reading_history_id=new_history.id,
            previous_holder_id=previous_holder_id,
            book_status=BookStatus.READING,
            message="Recebimento confirmado. Boa leitura!",
        )
        if previous_holder_id is not None and previous_holder_id != user_id:
            await best_effort(
                self.notifier.notify_book_delivered(previous_holder_id, book_id, book_title),
                "notificar entrega confirmada",
                session=self.db,
            )
        await best_effort(
            self._post_system_message(result.thread_id, user_id, DELIVERED_MESSAGE),
            "registrar mensagem de sistema",
            session=self.db,
        )
        return result

    # ==========================================
    # Mensagens
    # ==========================================

    async def post_message(
        self,
        thread_id: UUID,
        user_id: UUID,
        text: str,
    ) -> HandoverMessageRead:
        """
        Inclui mensagem de um participante e notifica a outra parte.

        Raises:
            ThreadNotFoundError: Conversa não encontrada
            NotParticipantError: Usuário não participa da conversa
        """
        thread = await self.repo.get_by_id(thread_id)
        if not thread:
            raise ThreadNotFoundError()

        if not thread.is_participant(user_id):
            raise NotParticipantError()

        text = (text or "").strip()
        if not text:
            raise CirculationError("Mensagem vazia")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise CirculationError(
                f"Mensagem excede {MAX_MESSAGE_LENGTH} caracteres"
            )

        message = await self.repo.add_message(thread_id, user_id, text)
        await self.db.commit()
        result = HandoverMessageRead.model_validate(message)

        await best_effort(
            self.notifier.notify_handover_message(
                thread.other_participant(user_id),
                thread.book_id,
                thread.book.title if thread.book else "",
            ),
            "notificar nova mensagem",
            session=self.db,
        )
        return result

    async def get_messages(self, thread_id: UUID, user_id: UUID) -> list[HandoverMessageRead]:
        """
        Mensagens da conversa em ordem cronológica (somente participantes).

        Raises:
            ThreadNotFoundError: Conversa não encontrada
            NotParticipantError: Usuário não participa da conversa
        """
        thread = await self.repo.get_by_id(thread_id)
        if not thread:
            raise ThreadNotFoundError()

        if not thread.is_participant(user_id):
            raise NotParticipantError()

        messages = await self.repo.get_messages(thread_id)
        return [HandoverMessageRead.model_validate(m) for m in messages]

    async def announce_thread(
        self,
        thread_id: UUID,
        current_holder_id: UUID,
        next_holder_id: UUID,
        book_id: UUID,
        book_title: str,
        text: str,
    ) -> None:
        """
        Mensagem de sistema e notificação das duas partes de uma nova conversa.

        Recebe valores simples, não o model: um efeito que falha faz rollback
        e expira os objetos da sessão.
        """
        await best_effort(
            self._post_system_message(thread_id, current_holder_id, text),
            "registrar mensagem de sistema",
            session=self.db,
        )
        await best_effort(
            self.notifier.notify_handover_thread_created(
                current_holder_id,
                next_holder_id,
                book_id,
                book_title,
            ),
            "notificar criação da conversa",
            session=self.db,
        )

    async def _post_system_message(self, thread_id: UUID, user_id: UUID, text: str) -> None:
        await self.repo.add_message(thread_id, user_id, text, is_system_message=True)
        await self.db.commit()

    # ==========================================
    # Consultas
    # ==========================================

    async def get_active_thread(self, book_id: UUID) -> HandoverThreadDetail | None:
        """Conversa ativa do livro com mensagens, se houver."""
        thread = await self.repo.get_active_by_book(book_id)
        if not thread:
            return None
        return HandoverThreadDetail.from_thread(thread)

    async def get_user_threads(
        self,
        user_id: UUID,
        status: HandoverStatus | None = None,
    ) -> list[HandoverThreadRead]:
        """Conversas em que o usuário participa."""
        threads = await self.repo.get_by_user(user_id, status)
        return [HandoverThreadRead.model_validate(t) for t in threads]

    async def get_reading_status(self, book_id: UUID, user_id: UUID) -> ReadingStatus:
        """
        Situação do livro para o usuário.

        Raises:
            BookNotFoundError: Livro não encontrado
        """
        book = await self.book_repo.get_by_id(book_id)
        if not book:
            raise BookNotFoundError()

        history = await self.history_repo.get_active_by_book(book_id)
        thread = await self.repo.get_active_by_book(book_id)

        return ReadingStatus(
            book_id=book_id,
            book_status=book.status,
            is_current_holder=book.current_holder_id == user_id,
            is_next_holder=thread is not None and thread.next_holder_id == user_id,
            active_history=(
                ReadingHistoryRead.model_validate(history) if history else None
            ),
            active_thread_id=thread.id if thread else None,
        )

    # ==========================================
    # Cancelamento
    # ==========================================

    async def cancel_thread(self, thread_id: UUID, user_id: UUID) -> HandoverThreadRead:
        """
        Cancela uma conversa aberta pela aprovação, antes da entrega.

        O livro volta ao status anterior à aprovação: ON_HOLD com o portador da
        conversa ou AVAILABLE sem portador. Conversas sem esse registro usam o
        histórico: ON_HOLD se o livro já teve leitura concluída. O pedido
        aprovado do próximo portador passa para REJECTED na mesma transação.
        Conversas abertas pela varredura (ligadas a um período ativo) não
        podem ser canceladas.

        Raises:
            ThreadNotFoundError: Conversa não encontrada
            NotParticipantError: Usuário não participa da conversa
            InvalidStateError: Conversa encerrada ou ligada a um período ativo
        """
        thread = await self.repo.get_by_id(thread_id)
        if not thread:
            raise ThreadNotFoundError()

        if not thread.is_participant(user_id):
            raise NotParticipantError()

        if not thread.is_active:
            raise InvalidStateError("Conversa já encerrada")

        if thread.reading_history_id is not None:
            raise InvalidStateError(
                "Conversa ligada a uma leitura em andamento não pode ser cancelada"
            )

        status = thread.previous_book_status
        if status is None:
            last = await self.history_repo.get_last_completed(thread.book_id)
            status = BookStatus.ON_HOLD if last else BookStatus.AVAILABLE
        holder_id = thread.current_holder_id if status == BookStatus.ON_HOLD else None

        now = utcnow()
        closed = await self.repo.close(thread.id, HandoverStatus.CANCELLED, now)
        if not closed:
            await self.db.rollback()
            raise InvalidStateError("Conversa já encerrada")

        moved = await self.book_repo.transition(
            thread.book_id,
            expected=(BookStatus.REQUESTED,),
            status=status,
            holder_id=holder_id,
        )
        if not moved:
            await self.db.rollback()
            raise InvalidStateError("Livro não está aguardando entrega")

        withdrawn = await self.request_repo.withdraw_approved(
            thread.book_id,
            thread.next_holder_id,
            processed_at=now,
        )

        await self.db.commit()
        await self.db.refresh(thread)
        logger.info(
            f"Conversa {thread_id} cancelada por {user_id}; livro -> {status.value}, "
            f"{withdrawn} pedido(s) aprovado(s) retirado(s)"
        )

        result = HandoverThreadRead.model_validate(thread)
        await best_effort(
            self._post_system_message(thread_id, user_id, CANCELLED_MESSAGE),
            "registrar mensagem de sistema",
            session=self.db,
        )
        return result
