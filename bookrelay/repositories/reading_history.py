"""
Repository para operações de ReadingHistory no banco de dados.

Nenhum método faz commit: o serviço agrupa as escritas de uma transição
e confirma uma única vez.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.models.enums import DeliveryStatus
from bookrelay.models.reading_history import ReadingHistory
from bookrelay.repositories.base import BaseRepository


class ReadingHistoryRepository(BaseRepository[ReadingHistory]):
    """Repository da linha do tempo de leitores."""

    def __init__(self, db: AsyncSession):
        super().__init__(ReadingHistory, db)

    # ==========================================
    # Consultas
    # ==========================================

    async def get_active_by_book(self, book_id: UUID) -> ReadingHistory | None:
        """Busca a entrada ativa (end_date IS NULL) de um livro."""
        result = await self.db.execute(
            select(ReadingHistory)
            .where(
                ReadingHistory.book_id == book_id,
                ReadingHistory.end_date.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def get_last_completed(self, book_id: UUID) -> ReadingHistory | None:
        """
        Busca a entrada concluída mais recente de um livro.

        O leitor dessa entrada é quem ainda está com o livro em mãos
        quando não há leitura ativa.
        """
        result = await self.db.execute(
            select(ReadingHistory)
            .where(
                ReadingHistory.book_id == book_id,
                ReadingHistory.is_completed.is_(True),
            )
            .order_by(ReadingHistory.completed_at.desc().nulls_last())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_due_soon(
        self,
        start: datetime,
        until: datetime,
    ) -> list[ReadingHistory]:
        """
        Entradas ativas com prazo em [start, until] e sem sucessor definido.
        """
        result = await self.db.execute(
            select(ReadingHistory)
            .where(
                ReadingHistory.end_date.is_(None),
                ReadingHistory.next_reader_id.is_(None),
                ReadingHistory.due_date >= start,
                ReadingHistory.due_date <= until,
            )
            .order_by(ReadingHistory.due_date.asc())
        )
        return list(result.scalars().all())

    async def get_by_reader(self, reader_id: UUID) -> list[ReadingHistory]:
        """Lista o histórico de um leitor (mais recentes primeiro)."""
        result = await self.db.execute(
            select(ReadingHistory)
            .where(ReadingHistory.reader_id == reader_id)
            .order_by(ReadingHistory.start_date.desc())
        )
        return list(result.scalars().all())

    # ==========================================
    # Escritas (sem commit)
    # ==========================================

    async def start(
        self,
        book_id: UUID,
        reader_id: UUID,
        start_date: datetime,
        due_date: datetime | None,
    ) -> ReadingHistory:
        """
        Abre uma nova entrada ativa.

        Raises:
            IntegrityError: se o livro já tem entrada ativa (índice único)
        """
        entry = ReadingHistory(
            book_id=book_id,
            reader_id=reader_id,
            start_date=start_date,
            due_date=due_date,
            is_completed=False,
            delivery_status=DeliveryStatus.NOT_STARTED,
        )
        return await self.add(entry)

    async def close(self, history_id: UUID, end_date: datetime) -> bool:
        """Fecha a entrada se ainda estiver ativa."""
        affected = await self.conditional_update(
            ReadingHistory.id == history_id,
            ReadingHistory.end_date.is_(None),
            end_date=end_date,
        )
        return affected == 1

    async def mark_completed(
        self,
        history_id: UUID,
        completed_at: datetime,
        delivery_status: DeliveryStatus | None = None,
    ) -> bool:
        """Marca a leitura como concluída se ainda não estava."""
        values = {"is_completed": True, "completed_at": completed_at}
        if delivery_status is not None:
            values["delivery_status"] = delivery_status

        affected = await self.conditional_update(
            ReadingHistory.id == history_id,
            ReadingHistory.is_completed.is_(False),
            **values,
        )
        return affected == 1

    async def mark_delivered(self, history_id: UUID, delivered_at: datetime) -> bool:
        """
        Confirma a entrega ao próximo leitor e fecha a entrada.

        Só afeta entradas ativas ainda não entregues.
        """
        affected = await self.conditional_update(
            ReadingHistory.id == history_id,
            ReadingHistory.end_date.is_(None),
            ReadingHistory.delivery_status != DeliveryStatus.DELIVERED,
            delivery_status=DeliveryStatus.DELIVERED,
            marked_delivered_at=delivered_at,
            end_date=delivered_at,
        )
        return affected == 1

    async def set_next_reader(self, history_id: UUID, reader_id: UUID) -> bool:
        """Define o sucessor somente se nenhum foi definido antes."""
        affected = await self.conditional_update(
            ReadingHistory.id == history_id,
            ReadingHistory.end_date.is_(None),
            ReadingHistory.next_reader_id.is_(None),
            next_reader_id=reader_id,
        )
        return affected == 1
