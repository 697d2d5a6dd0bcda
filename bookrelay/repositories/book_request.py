"""
Repository para operações de BookRequest no banco de dados.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from bookrelay.models.book_request import BookRequest
from bookrelay.models.enums import RequestStatus
from bookrelay.models.reading_history import ReadingHistory
from bookrelay.repositories.base import BaseRepository


def _served():
    """Leitura do solicitante iniciada depois da aprovação do pedido."""
    return exists().where(
        and_(
            ReadingHistory.book_id == BookRequest.book_id,
            ReadingHistory.reader_id == BookRequest.user_id,
            ReadingHistory.start_date >= BookRequest.processed_at,
        )
    )


class BookRequestRepository(BaseRepository[BookRequest]):
    """Repository da fila de pedidos."""

    def __init__(self, db: AsyncSession):
        super().__init__(BookRequest, db)

    async def get_with_relations(self, request_id: UUID) -> BookRequest | None:
        """Busca pedido com usuário e livro."""
        result = await self.db.execute(
            select(BookRequest)
            .where(BookRequest.id == request_id)
            .options(
                selectinload(BookRequest.user),
                selectinload(BookRequest.book),
            )
        )
        return result.scalar_one_or_none()

    async def get_pending_by_book_and_user(
        self,
        book_id: UUID,
        user_id: UUID,
    ) -> BookRequest | None:
        """
        Busca pedido PENDING de um usuário para um livro.

        Usado para verificar duplicatas antes de criar novo pedido.
        """
        result = await self.db.execute(
            select(BookRequest)
            .where(
                BookRequest.book_id == book_id,
                BookRequest.user_id == user_id,
                BookRequest.status == RequestStatus.PENDING,
            )
        )
        return result.scalar_one_or_none()

    async def get_ranked(
        self,
        book_id: UUID,
        status: RequestStatus = RequestStatus.PENDING,
    ) -> list[BookRequest]:
        """
        Lista pedidos de um livro em ordem de atendimento.

        Ordem: priority_score desc, requested_at asc (empate por chegada).
        """
        result = await self.db.execute(
            select(BookRequest)
            .where(
                BookRequest.book_id == book_id,
                BookRequest.status == status,
            )
            .options(selectinload(BookRequest.user))
            .order_by(
                BookRequest.priority_score.desc(),
                BookRequest.requested_at.asc(),
            )
        )
        return list(result.scalars().all())

    async def get_next_approved(
        self,
        book_id: UUID,
        exclude_user_id: UUID | None = None,
    ) -> BookRequest | None:
        """
        Busca o pedido APPROVED de maior prioridade ainda não atendido.

        Um pedido aprovado conta como atendido quando o solicitante já
        iniciou uma leitura do livro depois da aprovação.

        Args:
            book_id: ID do livro
            exclude_user_id: Leitor atual (não pode ser o próprio sucessor)
        """
        query = (
            select(BookRequest)
            .where(
                BookRequest.book_id == book_id,
                BookRequest.status == RequestStatus.APPROVED,
                ~_served(),
            )
            .order_by(
                BookRequest.priority_score.desc(),
                BookRequest.requested_at.asc(),
            )
            .limit(1)
        )
        if exclude_user_id is not None:
            query = query.where(BookRequest.user_id != exclude_user_id)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_other_pending_ids(
        self,
        book_id: UUID,
        exclude_request_id: UUID,
    ) -> list[UUID]:
        """IDs dos demais pedidos PENDING de um livro."""
        result = await self.db.execute(
            select(BookRequest.id)
            .where(
                BookRequest.book_id == book_id,
                BookRequest.status == RequestStatus.PENDING,
                BookRequest.id != exclude_request_id,
            )
        )
        return list(result.scalars().all())

    async def resolve_pending(
        self,
        request_id: UUID,
        status: RequestStatus,
        processed_at: datetime,
        due_date: datetime | None = None,
    ) -> bool:
        """
        Move um pedido de PENDING para um status final.

        Não faz commit.

        Returns:
            True se o pedido ainda estava PENDING e foi alterado
        """
        values = {"status": status, "processed_at": processed_at}
        if due_date is not None:
            values["due_date"] = due_date

        affected = await self.conditional_update(
            BookRequest.id == request_id,
            BookRequest.status == RequestStatus.PENDING,
            **values,
        )
        return affected == 1

    async def withdraw_approved(
        self,
        book_id: UUID,
        user_id: UUID,
        processed_at: datetime,
    ) -> int:
        """
        Move para REJECTED o pedido APPROVED ainda não atendido do usuário.

        Pedidos já atendidos (com leitura posterior) ficam como estão.
        Não faz commit.

        Returns:
            Número de pedidos alterados
        """
        return await self.conditional_update(
            BookRequest.book_id == book_id,
            BookRequest.user_id == user_id,
            BookRequest.status == RequestStatus.APPROVED,
            ~_served(),
            status=RequestStatus.REJECTED,
            processed_at=processed_at,
        )

    async def delete_pending(self, book_id: UUID, user_id: UUID) -> int:
        """
        Remove o pedido PENDING de um usuário para um livro.

        Não faz commit.

        Returns:
            Número de linhas removidas
        """
        result = await self.db.execute(
            delete(BookRequest).where(
                BookRequest.book_id == book_id,
                BookRequest.user_id == user_id,
                BookRequest.status == RequestStatus.PENDING,
            )
        )
        return result.rowcount

    async def get_by_user(self, user_id: UUID) -> list[BookRequest]:
        """Lista pedidos de um usuário (mais recentes primeiro)."""
        result = await self.db.execute(
            select(BookRequest)
            .where(BookRequest.user_id == user_id)
            .options(selectinload(BookRequest.book))
            .order_by(BookRequest.requested_at.desc())
        )
        return list(result.scalars().all())

    async def get_pending(self, limit: int = 100, offset: int = 0) -> list[BookRequest]:
        """Fila geral de pedidos PENDING para a administração."""
        result = await self.db.execute(
            select(BookRequest)
            .where(BookRequest.status == RequestStatus.PENDING)
            .options(
                selectinload(BookRequest.user),
                selectinload(BookRequest.book),
            )
            .order_by(
                BookRequest.priority_score.desc(),
                BookRequest.requested_at.asc(),
            )
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())
