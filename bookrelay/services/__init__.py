"""
Módulo de serviços - lógica de negócio.
"""

from bookrelay.services.notification import NotificationService
from bookrelay.services.success_score import SuccessScoreService
from bookrelay.services.priority import PriorityCalculator
from bookrelay.services.book_request import BookRequestService
from bookrelay.services.reading_history import ReadingHistoryService
from bookrelay.services.handover import HandoverService
from bookrelay.services.circulation import CirculationService
from bookrelay.services.due_soon import DueSoonScanner

__all__ = [
    "NotificationService",
    "SuccessScoreService",
    "PriorityCalculator",
    "BookRequestService",
    "ReadingHistoryService",
    "HandoverService",
    "CirculationService",
    "DueSoonScanner",
]
