"""
Repository para operações de HandoverThread e HandoverMessage.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bookrelay.models.enums import BookStatus, HandoverStatus
from bookrelay.models.handover import HandoverMessage, HandoverThread
from bookrelay.repositories.base import BaseRepository


class HandoverRepository(BaseRepository[HandoverThread]):
    """Repository das conversas de entrega."""

    def __init__(self, db: AsyncSession):
        super().__init__(HandoverThread, db)

    async def get_with_messages(self, thread_id: UUID) -> HandoverThread | None:
        """Busca conversa com mensagens carregadas."""
        result = await self.db.execute(
            select(HandoverThread)
            .where(HandoverThread.id == thread_id)
            .options(selectinload(HandoverThread.messages))
        )
        return result.scalar_one_or_none()

    async def get_active_by_book(self, book_id: UUID) -> HandoverThread | None:
        """Busca a conversa ACTIVE de um livro."""
        result = await self.db.execute(
            select(HandoverThread)
            .where(
                HandoverThread.book_id == book_id,
                HandoverThread.status == HandoverStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_user(
        self,
        user_id: UUID,
        status: HandoverStatus | None = None,
    ) -> list[HandoverThread]:
        """Lista conversas em que o usuário participa."""
        query = select(HandoverThread).where(
            or_(
                HandoverThread.current_holder_id == user_id,
                HandoverThread.next_holder_id == user_id,
            )
        )
        if status:
            query = query.where(HandoverThread.status == status)

        result = await self.db.execute(query.order_by(HandoverThread.created_at.desc()))
        return list(result.scalars().all())

    async def open(
        self,
        book_id: UUID,
        current_holder_id: UUID,
        next_holder_id: UUID,
        handover_due_date: datetime,
        reading_history_id: UUID | None = None,
        previous_book_status: BookStatus | None = None,
    ) -> HandoverThread:
        """
        Abre conversa ACTIVE. Não faz commit.

        Raises:
            IntegrityError: se já existe conversa ativa para o livro
        """
        thread = HandoverThread(
            book_id=book_id,
            current_holder_id=current_holder_id,
            next_holder_id=next_holder_id,
            reading_history_id=reading_history_id,
            previous_book_status=previous_book_status,
            status=HandoverStatus.ACTIVE,
            handover_due_date=handover_due_date,
        )
        return await self.add(thread)

    async def close(
        self,
        thread_id: UUID,
        status: HandoverStatus,
        closed_at: datetime,
    ) -> bool:
        """Encerra a conversa (COMPLETED ou CANCELLED) se ainda estiver ativa."""
        affected = await self.conditional_update(
            HandoverThread.id == thread_id,
            HandoverThread.status == HandoverStatus.ACTIVE,
            status=status,
            completed_at=closed_at,
        )
        return affected == 1

    async def add_message(
        self,
        thread_id: UUID,
        user_id: UUID,
        message: str,
        is_system_message: bool = False,
    ) -> HandoverMessage:
        """Inclui mensagem na conversa. Não faz commit."""
        entry = HandoverMessage(
            thread_id=thread_id,
            user_id=user_id,
            message=message,
            is_system_message=is_system_message,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def get_messages(self, thread_id: UUID) -> list[HandoverMessage]:
        """Mensagens em ordem cronológica."""
        result = await self.db.execute(
            select(HandoverMessage)
            .where(HandoverMessage.thread_id == thread_id)
            .order_by(HandoverMessage.created_at.asc())
        )
        return list(result.scalars().all())
