"""
Service do histórico de leitura (linha do tempo de portadores).

"Concluído" e "fechado" são estados distintos:
    - mark_completed: o leitor terminou de ler
    - close: o livro saiu das mãos do leitor

Este serviço expõe as operações isoladas (cada uma com seu commit). As
transições compostas da circulação e da entrega usam o repository
diretamente para gravar tudo numa única transação.
"""

from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.core.config import get_settings
from bookrelay.core.exceptions import (
    ActiveReadingExistsError,
    AlreadyCompletedError,
    BookNotFoundError,
    InvalidStateError,
    ReadingHistoryNotFoundError,
)
from bookrelay.core.logging import get_logger
from bookrelay.models.base import utcnow
from bookrelay.models.book import Book
from bookrelay.repositories.book import BookRepository
from bookrelay.repositories.reading_history import ReadingHistoryRepository
from bookrelay.schemas.reading_history import ReadingHistoryRead

logger = get_logger(__name__)


def reading_due_date(book: Book, start: datetime) -> datetime:
    """Prazo de leitura a partir do início do período."""
    days = book.max_reading_days or get_settings().DEFAULT_READING_DAYS
    return start + timedelta(days=days)


class ReadingHistoryService:
    """Service para operações do histórico de leitura."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.repo = ReadingHistoryRepository(db)
        self.book_repo = BookRepository(db)

    async def start(
        self,
        book_id: UUID,
        user_id: UUID,
        due_date: datetime | None = None,
    ) -> ReadingHistoryRead:
        """
        Abre um novo período de leitura.

        Raises:
            BookNotFoundError: Livro não encontrado
            ActiveReadingExistsError: O livro já tem período ativo
        """
        book = await self.book_repo.get_by_id(book_id)
        if not book:
            raise BookNotFoundError()

        active = await self.repo.get_active_by_book(book_id)
        if active:
            raise ActiveReadingExistsError()

        now = utcnow()
        try:
            entry = await self.repo.start(
                book_id,
                user_id,
                start_date=now,
                due_date=due_date or reading_due_date(book, now),
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ActiveReadingExistsError()

        logger.info(f"Leitura iniciada: livro={book_id}, leitor={user_id}")
        return ReadingHistoryRead.model_validate(entry)

    async def close(
        self,
        history_id: UUID,
        end_date: datetime | None = None,
    ) -> ReadingHistoryRead:
        """
        Fecha um período (preenche end_date). Não marca como concluído.

        Raises:
            ReadingHistoryNotFoundError: Entrada não encontrada
            InvalidStateError: Entrada já estava fechada
        """
        entry = await self._get_or_404(history_id)

        closed = await self.repo.close(history_id, end_date or utcnow())
        if not closed:
            await self.db.rollback()
            raise InvalidStateError("Período de leitura já encerrado")

        await self.db.commit()
        await self.db.refresh(entry)
        return ReadingHistoryRead.model_validate(entry)

    async def mark_completed(
        self,
        history_id: UUID,
        completed_at: datetime | None = None,
    ) -> ReadingHistoryRead:
        """
        Marca a leitura como concluída. Não fecha o período.

        Raises:
            ReadingHistoryNotFoundError: Entrada não encontrada
            AlreadyCompletedError: Já estava concluída
        """
        entry = await self._get_or_404(history_id)

        completed = await self.repo.mark_completed(history_id, completed_at or utcnow())
        if not completed:
            await self.db.rollback()
            raise AlreadyCompletedError()

        await self.db.commit()
        await self.db.refresh(entry)
        return ReadingHistoryRead.model_validate(entry)

    async def due_soon(self, threshold_days: int | None = None) -> list[ReadingHistoryRead]:
        """
        Períodos ativos vencendo em [agora, agora + threshold] sem sucessor.

        Args:
            threshold_days: Janela em dias (default: DUE_SOON_THRESHOLD_DAYS)
        """
        if threshold_days is None:
            threshold_days = self.settings.DUE_SOON_THRESHOLD_DAYS

        now = utcnow()
        entries = await self.repo.get_due_soon(now, now + timedelta(days=threshold_days))
        return [ReadingHistoryRead.model_validate(e) for e in entries]

    async def get_active(self, book_id: UUID) -> ReadingHistoryRead | None:
        """Período ativo do livro, se houver."""
        entry = await self.repo.get_active_by_book(book_id)
        return ReadingHistoryRead.model_validate(entry) if entry else None

    async def get_last_completed(self, book_id: UUID) -> ReadingHistoryRead | None:
        """Período concluído mais recente do livro, se houver."""
        entry = await self.repo.get_last_completed(book_id)
        return ReadingHistoryRead.model_validate(entry) if entry else None

    async def get_user_history(self, user_id: UUID) -> list[ReadingHistoryRead]:
        """Histórico de leitura de um usuário."""
        entries = await self.repo.get_by_reader(user_id)
        return [ReadingHistoryRead.model_validate(e) for e in entries]

    async def _get_or_404(self, history_id: UUID):
        entry = await self.repo.get_by_id(history_id)
        if not entry:
            raise ReadingHistoryNotFoundError()
        return entry
