"""
Models SQLAlchemy da aplicação.

Importar todos os models aqui para que Base.metadata conheça todas as tabelas.
"""

from bookrelay.models.enums import (
    BookStatus,
    RequestStatus,
    DeliveryStatus,
    HandoverStatus,
    NotificationType,
)
from bookrelay.models.user import User
from bookrelay.models.book import Book
from bookrelay.models.book_request import BookRequest
from bookrelay.models.reading_history import ReadingHistory
from bookrelay.models.handover import HandoverThread, HandoverMessage
from bookrelay.models.notification import Notification, SuccessScoreHistory

__all__ = [
    "BookStatus",
    "RequestStatus",
    "DeliveryStatus",
    "HandoverStatus",
    "NotificationType",
    "User",
    "Book",
    "BookRequest",
    "ReadingHistory",
    "HandoverThread",
    "HandoverMessage",
    "Notification",
    "SuccessScoreHistory",
]
