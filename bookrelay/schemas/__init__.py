"""
Schemas Pydantic da aplicação.
"""

from bookrelay.schemas.base import (
    BaseSchema,
    ErrorDetail,
    ErrorResponse,
    MessageResponse,
    TimestampSchema,
)
from bookrelay.schemas.book_request import (
    BookRequestApprove,
    BookRequestCreate,
    BookRequestDetail,
    BookRequestRead,
    BookRequestReject,
)
from bookrelay.schemas.reading_history import ReadingHistoryRead, ReadingStatus
from bookrelay.schemas.handover import (
    MAX_MESSAGE_LENGTH,
    HandoverMessageCreate,
    HandoverMessageRead,
    HandoverThreadDetail,
    HandoverThreadRead,
)
from bookrelay.schemas.circulation import (
    ApprovalResult,
    CompletionResult,
    DeliveryResult,
    DueSoonScanResult,
    ReturnResult,
)

__all__ = [
    # Base
    "BaseSchema",
    "ErrorDetail",
    "ErrorResponse",
    "MessageResponse",
    "TimestampSchema",
    # BookRequest
    "BookRequestApprove",
    "BookRequestCreate",
    "BookRequestDetail",
    "BookRequestRead",
    "BookRequestReject",
    # ReadingHistory
    "ReadingHistoryRead",
    "ReadingStatus",
    # Handover
    "MAX_MESSAGE_LENGTH",
    "HandoverMessageCreate",
    "HandoverMessageRead",
    "HandoverThreadDetail",
    "HandoverThreadRead",
    # Circulação
    "ApprovalResult",
    "CompletionResult",
    "DeliveryResult",
    "DueSoonScanResult",
    "ReturnResult",
]
