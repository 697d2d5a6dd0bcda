"""
Módulo de repositórios - acesso a dados.
"""

from bookrelay.repositories.base import BaseRepository
from bookrelay.repositories.user import UserRepository
from bookrelay.repositories.book import BookRepository
from bookrelay.repositories.book_request import BookRequestRepository
from bookrelay.repositories.reading_history import ReadingHistoryRepository
from bookrelay.repositories.handover import HandoverRepository
from bookrelay.repositories.notification import (
    NotificationRepository,
    SuccessScoreHistoryRepository,
)

__all__ = [
    "BaseRepository",
    "UserRepository",
    "BookRepository",
    "BookRequestRepository",
    "ReadingHistoryRepository",
    "HandoverRepository",
    "NotificationRepository",
    "SuccessScoreHistoryRepository",
]
