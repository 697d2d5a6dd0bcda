"""
Varredura de vencimentos próximos (due-soon scanner).

Para cada período de leitura ativo que vence dentro da janela e ainda não
tem sucessor:
    1. Busca o pedido APPROVED de maior prioridade ainda não atendido
    2. Grava o sucessor no período (UPDATE ... WHERE next_reader_id IS NULL)
    3. Se o livro já tem conversa ativa, para aqui
    4. Abre a conversa (leitor atual -> sucessor), com prazo igual ao do
       período, mensagem de sistema e notificação das duas partes

Idempotente: períodos com sucessor não voltam na consulta, e o índice
único impede segunda conversa ativa. O lock no Redis só evita trabalho
duplicado entre instâncias.

Chamada por um agendador externo (ver bookrelay.jobs.due_soon).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.core.config import get_settings
from bookrelay.core.lock import RedisLock
from bookrelay.core.logging import get_logger
from bookrelay.models.base import utcnow
from bookrelay.models.reading_history import ReadingHistory
from bookrelay.repositories.book_request import BookRequestRepository
from bookrelay.repositories.handover import HandoverRepository
from bookrelay.repositories.reading_history import ReadingHistoryRepository
from bookrelay.schemas.circulation import DueSoonScanResult
from bookrelay.services.handover import HandoverService

logger = get_logger(__name__)

SCAN_LOCK_NAME = "due_soon_scan"

# Resultado do processamento de um período
CREATED = "created"
NO_REQUEST = "no_request"
ACTIVE_THREAD = "active_thread"
ALREADY_ASSIGNED = "already_assigned"


@dataclass(frozen=True)
class DueSoonCandidate:
    """Cópia dos campos do período usados na varredura (sobrevive a rollback)."""
    history_id: UUID
    book_id: UUID
    reader_id: UUID
    due_date: datetime
    book_title: str

    @classmethod
    def from_history(cls, history: ReadingHistory) -> "DueSoonCandidate":
        return cls(
            history_id=history.id,
            book_id=history.book_id,
            reader_id=history.reader_id,
            due_date=history.due_date,
            book_title=history.book.title if history.book else "",
        )


class DueSoonScanner:
    """Abre conversas de entrega antes do vencimento da leitura."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.history_repo = ReadingHistoryRepository(db)
        self.request_repo = BookRequestRepository(db)
        self.handover_repo = HandoverRepository(db)
        self.handover = HandoverService(db)

    async def run(self, threshold_days: int | None = None) -> DueSoonScanResult:
        """
        Executa uma varredura completa.

        Args:
            threshold_days: Janela em dias (default: DUE_SOON_THRESHOLD_DAYS)
        """
        lock = RedisLock(SCAN_LOCK_NAME)
        if not await lock.acquire():
            logger.info("Varredura já em execução em outra instância")
            return DueSoonScanResult(locked=True, message="Varredura em andamento")

        try:
            return await self.scan(threshold_days)
        finally:
            await lock.release()

    async def scan(self, threshold_days: int | None = None) -> DueSoonScanResult:
        """Varredura sem lock."""
        if threshold_days is None:
            threshold_days = self.settings.DUE_SOON_THRESHOLD_DAYS

        now = utcnow()
        histories = await self.history_repo.get_due_soon(
            now,
            now + timedelta(days=threshold_days),
        )

        candidates = [DueSoonCandidate.from_history(h) for h in histories]

        result = DueSoonScanResult(scanned=len(candidates))
        for candidate in candidates:
            try:
                outcome = await self._process(candidate)
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Erro na varredura do livro {candidate.book_id}: {e}")
                result.errors += 1
                continue

            if outcome == CREATED:
                result.threads_created += 1
            elif outcome == NO_REQUEST:
                result.skipped_no_request += 1
            elif outcome == ACTIVE_THREAD:
                result.skipped_active_thread += 1
            elif outcome == ALREADY_ASSIGNED:
                result.skipped_already_assigned += 1

        result.message = (
            f"Períodos: {result.scanned}, conversas criadas: {result.threads_created}"
        )
        logger.info(f"Varredura concluída. {result.message}")
        return result

    async def _process(self, candidate: DueSoonCandidate) -> str:
        book_id = candidate.book_id

        next_request = await self.request_repo.get_next_approved(
            book_id,
            exclude_user_id=candidate.reader_id,
        )
        if not next_request:
            return NO_REQUEST
        next_reader_id = next_request.user_id

        assigned = await self.history_repo.set_next_reader(candidate.history_id, next_reader_id)
        if not assigned:
            await self.db.rollback()
            return ALREADY_ASSIGNED

        existing = await self.handover_repo.get_active_by_book(book_id)
        if existing:
            await self.db.commit()
            logger.info(f"Livro {book_id} já tem conversa ativa; sucessor gravado")
            return ACTIVE_THREAD

        try:
            thread = await self.handover_repo.open(
                book_id=book_id,
                current_holder_id=candidate.reader_id,
                next_holder_id=next_reader_id,
                handover_due_date=candidate.due_date,
                reading_history_id=candidate.history_id,
            )
            await self.db.commit()
        except IntegrityError:
            # Outra transação abriu a conversa primeiro
            await self.db.rollback()
            return ACTIVE_THREAD

        thread_id = thread.id
        logger.info(
            f"Conversa {thread_id} aberta: livro={book_id}, "
            f"{candidate.reader_id} -> {next_reader_id}"
        )

        await self.handover.announce_thread(
            thread_id=thread_id,
            current_holder_id=candidate.reader_id,
            next_holder_id=next_reader_id,
            book_id=book_id,
            book_title=candidate.book_title,
            text=(
                f"Conversa de entrega criada. O prazo da leitura é "
                f"{candidate.due_date.strftime('%d/%m/%Y')}. Combine a entrega."
            ),
        )
        return CREATED
