"""
Service de pontuação de sucesso (scorer).

Contrato mínimo usado por outros módulos: adjust_score() grava o ajuste no
histórico e soma o delta ao usuário na mesma transação.

Os ganchos de devolução (no prazo, atrasada, perdida) existem no contrato
mas não são chamados pelos fluxos de circulação.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.core.logging import get_logger
from bookrelay.models.notification import SuccessScoreHistory
from bookrelay.repositories.notification import SuccessScoreHistoryRepository
from bookrelay.repositories.user import UserRepository

logger = get_logger(__name__)

# Pontos por evento de devolução
RETURN_ON_TIME_POINTS = 10
RETURN_LATE_POINTS = -5
LOST_BOOK_POINTS = -50

REFERENCE_BOOK = "book"


class SuccessScoreService:
    """Service para ajustes de pontuação."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)
        self.history_repo = SuccessScoreHistoryRepository(db)

    async def adjust_score(
        self,
        user_id: UUID,
        delta: int,
        reason: str,
        reference_type: str | None = None,
        reference_id: UUID | None = None,
    ) -> bool:
        """
        Aplica um ajuste de pontuação.

        Returns:
            True se o usuário existe e o ajuste foi gravado
        """
        updated = await self.user_repo.adjust_score(user_id, delta)
        if not updated:
            await self.db.rollback()
            logger.warning(f"Ajuste de pontuação ignorado: usuário {user_id} não encontrado")
            return False

        await self.history_repo.add(
            SuccessScoreHistory(
                user_id=user_id,
                change_amount=delta,
                reason=reason,
                reference_type=reference_type,
                reference_id=reference_id,
            )
        )
        await self.db.commit()

        logger.info(f"Pontuação de {user_id} ajustada em {delta:+d} ({reason})")
        return True

    async def process_return_on_time(self, user_id: UUID, book_id: UUID) -> bool:
        return await self.adjust_score(
            user_id,
            RETURN_ON_TIME_POINTS,
            "Livro repassado no prazo",
            REFERENCE_BOOK,
            book_id,
        )

    async def process_return_late(self, user_id: UUID, book_id: UUID) -> bool:
        return await self.adjust_score(
            user_id,
            RETURN_LATE_POINTS,
            "Livro repassado com atraso",
            REFERENCE_BOOK,
            book_id,
        )

    async def process_lost_book(self, user_id: UUID, book_id: UUID) -> bool:
        return await self.adjust_score(
            user_id,
            LOST_BOOK_POINTS,
            "Livro perdido",
            REFERENCE_BOOK,
            book_id,
        )

    async def get_history(self, user_id: UUID) -> list[SuccessScoreHistory]:
        """Histórico de ajustes de um usuário."""
        return await self.history_repo.get_by_user(user_id)
