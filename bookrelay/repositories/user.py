"""
Repository para operações de User no banco de dados.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.models.user import User
from bookrelay.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository de User: leitura e contadores da circulação."""

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    async def get_by_email(self, email: str) -> User | None:
        """Busca usuário por email."""
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def increment_books_received(self, user_id: UUID) -> bool:
        """Soma 1 ao contador de livros recebidos. Não faz commit."""
        affected = await self.conditional_update(
            User.id == user_id,
            books_received=User.books_received + 1,
        )
        return affected == 1

    async def adjust_score(self, user_id: UUID, delta: int) -> bool:
        """Soma delta à pontuação (no banco, sem ler antes). Não faz commit."""
        affected = await self.conditional_update(
            User.id == user_id,
            success_score=User.success_score + delta,
        )
        return affected == 1
