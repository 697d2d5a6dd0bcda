"""
Repository para operações de Book no banco de dados.
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.models.book import Book
from bookrelay.models.enums import BookStatus
from bookrelay.repositories.base import BaseRepository


class BookRepository(BaseRepository[Book]):
    """
    Repository de Book.

    Toda mudança de status passa por transition(), que grava status e
    portador no mesmo UPDATE condicional.
    """

    def __init__(self, db: AsyncSession):
        super().__init__(Book, db)

    async def get_for_update(self, book_id: UUID) -> Book | None:
        """
        Busca livro bloqueando a linha até o fim da transação (SELECT FOR UPDATE).

        Serializa aprovações concorrentes para o mesmo livro.
        """
        result = await self.db.execute(
            select(Book)
            .where(Book.id == book_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def transition(
        self,
        book_id: UUID,
        expected: Sequence[BookStatus],
        status: BookStatus,
        holder_id: UUID | None,
    ) -> bool:
        """
        Altera status e portador se o status atual for um dos esperados.

        Não faz commit.

        Args:
            book_id: ID do livro
            expected: Status aceitos como ponto de partida
            status: Novo status
            holder_id: Novo portador (None limpa o portador)

        Returns:
            True se a linha foi alterada, False se o estado mudou antes
        """
        affected = await self.conditional_update(
            Book.id == book_id,
            Book.status.in_(list(expected)),
            status=status,
            current_holder_id=holder_id,
        )
        return affected == 1

    async def get_by_holder(
        self,
        user_id: UUID,
        status: BookStatus | None = None,
    ) -> list[Book]:
        """Lista livros em posse de um usuário (opcionalmente por status)."""
        query = select(Book).where(Book.current_holder_id == user_id)
        if status:
            query = query.where(Book.status == status)

        result = await self.db.execute(query.order_by(Book.title))
        return list(result.scalars().all())
