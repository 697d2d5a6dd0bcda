"""
Repository para notificações e histórico de pontuação.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.models.notification import Notification, SuccessScoreHistory
from bookrelay.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Repository da caixa de notificações."""

    def __init__(self, db: AsyncSession):
        super().__init__(Notification, db)

    async def get_by_user(
        self,
        user_id: UUID,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Lista notificações de um usuário (mais recentes primeiro)."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))

        result = await self.db.execute(query.order_by(Notification.created_at.desc()))
        return list(result.scalars().all())


class SuccessScoreHistoryRepository(BaseRepository[SuccessScoreHistory]):
    """Repository do histórico de ajustes de pontuação."""

    def __init__(self, db: AsyncSession):
        super().__init__(SuccessScoreHistory, db)

    async def get_by_user(self, user_id: UUID) -> list[SuccessScoreHistory]:
        result = await self.db.execute(
            select(SuccessScoreHistory)
            .where(SuccessScoreHistory.user_id == user_id)
            .order_by(SuccessScoreHistory.created_at.desc())
        )
        return list(result.scalars().all())
