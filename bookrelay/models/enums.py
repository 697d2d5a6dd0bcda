"""
Enums utilizados nos models da aplicação.
"""

import enum


class BookStatus(str, enum.Enum):
    """
    Status de circulação de um livro.

    Ciclo típico:
        AVAILABLE -> REQUESTED -> READING -> ON_HOLD -> REQUESTED -> ...
        READING -> AVAILABLE (devolução definitiva, sem sucessor)
    """
    AVAILABLE = "available"  # Sem portador, aceita pedidos
    REQUESTED = "requested"  # Pedido aprovado, entrega em negociação
    READING = "reading"      # Com um leitor
    ON_HOLD = "on_hold"      # Leitura concluída, fica com o último leitor
    RESERVED = "reserved"    # Bloqueado administrativamente


class RequestStatus(str, enum.Enum):
    """
    Status de um pedido de livro.

    Fluxo:
        PENDING -> APPROVED | REJECTED (ambos finais)
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DeliveryStatus(str, enum.Enum):
    """Situação da entrega física ao próximo leitor."""
    NOT_STARTED = "not_started"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


class HandoverStatus(str, enum.Enum):
    """
    Status de uma conversa de entrega.

    Fluxo:
        ACTIVE -> COMPLETED | CANCELLED
    """
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class NotificationType(str, enum.Enum):
    """Tipos de notificação enviados pela circulação."""
    REQUEST_APPROVED = "request_approved"
    BOOK_IN_TRANSIT = "book_in_transit"
    BOOK_DELIVERED = "book_delivered"
    HANDOVER_THREAD_CREATED = "handover_thread_created"
    HANDOVER_MESSAGE = "handover_message"


# Status em que o livro está fisicamente com um portador registrado
HELD_STATUSES = (BookStatus.READING, BookStatus.ON_HOLD)

# Status em que um pedido pode ser aprovado abrindo a entrega imediatamente
APPROVABLE_STATUSES = (BookStatus.AVAILABLE, BookStatus.ON_HOLD)


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persiste o valor (minúsculo) do enum em vez do nome."""
    return [member.value for member in enum_cls]
