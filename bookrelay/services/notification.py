"""
Service de notificações da circulação.

Grava notificações in-app (tabela notifications). A entrega externa
(push, e-mail) fica fora deste serviço. Os chamadores tratam estes
métodos como fire-and-forget via core.side_effects.best_effort.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.core.logging import get_logger
from bookrelay.models.enums import NotificationType
from bookrelay.models.notification import Notification
from bookrelay.repositories.notification import NotificationRepository

logger = get_logger(__name__)


def book_link(book_id: UUID) -> str:
    return f"/books/{book_id}"


def handover_link(book_id: UUID) -> str:
    return f"/books/{book_id}/handover"


class NotificationService:
    """Service para envio de notificações."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repo = NotificationRepository(db)

    async def notify(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        link: str | None = None,
    ) -> Notification:
        """Cria uma notificação e faz commit."""
        notification = await self.repo.create(
            user_id=user_id,
            type=type.value,
            title=title,
            message=message,
            link=link,
            is_read=False,
        )
        logger.info(f"Notificação {type.value} enviada para {user_id}")
        return notification

    async def notify_request_approved(
        self,
        user_id: UUID,
        book_id: UUID,
        book_title: str,
    ) -> Notification:
        return await self.notify(
            user_id,
            NotificationType.REQUEST_APPROVED,
            "Pedido aprovado",
            f"Seu pedido para '{book_title}' foi aprovado!",
            book_link(book_id),
        )

    async def notify_book_in_transit(
        self,
        user_id: UUID,
        book_id: UUID,
        book_title: str,
    ) -> Notification:
        return await self.notify(
            user_id,
            NotificationType.BOOK_IN_TRANSIT,
            "Livro a caminho",
            f"'{book_title}' está a caminho. Confirme quando receber.",
            handover_link(book_id),
        )

    async def notify_book_delivered(
        self,
        user_id: UUID,
        book_id: UUID,
        book_title: str,
    ) -> Notification:
        return await self.notify(
            user_id,
            NotificationType.BOOK_DELIVERED,
            "Entrega confirmada",
            f"O próximo leitor confirmou o recebimento de '{book_title}'.",
            book_link(book_id),
        )

    async def notify_handover_thread_created(
        self,
        holder_id: UUID,
        next_holder_id: UUID,
        book_id: UUID,
        book_title: str,
    ) -> None:
        """Notifica as duas partes de uma nova conversa de entrega."""
        await self.notify(
            holder_id,
            NotificationType.HANDOVER_THREAD_CREATED,
            "Combine a entrega",
            f"'{book_title}' tem um próximo leitor. Combine a entrega na conversa.",
            handover_link(book_id),
        )
        await self.notify(
            next_holder_id,
            NotificationType.HANDOVER_THREAD_CREATED,
            "Combine o recebimento",
            f"Você é o próximo leitor de '{book_title}'. Combine o recebimento na conversa.",
            handover_link(book_id),
        )

    async def notify_handover_message(
        self,
        user_id: UUID,
        book_id: UUID,
        book_title: str,
    ) -> Notification:
        return await self.notify(
            user_id,
            NotificationType.HANDOVER_MESSAGE,
            "Nova mensagem",
            f"Nova mensagem na conversa de entrega de '{book_title}'.",
            handover_link(book_id),
        )

    async def get_user_notifications(
        self,
        user_id: UUID,
        unread_only: bool = False,
    ) -> list[Notification]:
        """Caixa de notificações de um usuário."""
        return await self.repo.get_by_user(user_id, unread_only)
