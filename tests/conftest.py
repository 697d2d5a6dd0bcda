"""
Fixtures compartilhadas para testes.

Testes unitários: os services recebem uma sessão mockada (AsyncMock); os
repositories são substituídos com patch.object em cada teste e os models são
instâncias reais, montadas sem banco.

Testes de integração: test_db abre uma sessão num PostgreSQL real
(DATABASE_URL) e pula o teste se o banco não estiver acessível.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import bookrelay.models  # noqa: F401  (registra os models em Base.metadata)
from bookrelay.core.config import get_settings
from bookrelay.db.session import Base
from bookrelay.models.book import Book
from bookrelay.models.book_request import BookRequest
from bookrelay.models.enums import (
    BookStatus,
    DeliveryStatus,
    HandoverStatus,
    RequestStatus,
)
from bookrelay.models.handover import HandoverMessage, HandoverThread
from bookrelay.models.reading_history import ReadingHistory
from bookrelay.models.user import User


def now() -> datetime:
    return datetime.now(timezone.utc)


# ==========================================
# Event loop configuration
# ==========================================

@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


# ==========================================
# Database fixtures
# ==========================================

@pytest.fixture
def mock_db():
    """Mock da sessão do banco."""
    return AsyncMock()


@pytest.fixture(scope="session")
def test_engine():
    """
    Engine de teste com NullPool.

    Cada sessão abre a própria conexão, então duas sessões do mesmo teste
    disputam locks de linha como duas instâncias da aplicação.
    """
    return create_async_engine(
        get_settings().DATABASE_URL,
        echo=False,
        poolclass=NullPool,
    )


@pytest.fixture
def test_session_factory(test_engine):
    """Factory com a mesma configuração da aplicação."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(test_engine, test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Sessão num banco PostgreSQL real, com as tabelas criadas.

    Cada teste cria seus próprios usuários e livros, sem limpeza entre testes.
    """
    try:
        async with test_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except (OSError, asyncio.TimeoutError, SQLAlchemyError) as e:
        pytest.skip(f"PostgreSQL indisponível: {e}")

    async with test_session_factory() as session:
        yield session


# ==========================================
# Factories
# ==========================================

def make_user(name: str = "Test User", success_score: int = 0, **kwargs) -> User:
    user = User(
        id=kwargs.pop("id", uuid.uuid4()),
        name=name,
        email=kwargs.pop("email", f"{uuid.uuid4().hex[:8]}@example.com"),
        success_score=success_score,
        books_received=kwargs.pop("books_received", 0),
        books_shared=kwargs.pop("books_shared", 0),
        created_at=now(),
        updated_at=now(),
    )
    for key, value in kwargs.items():
        setattr(user, key, value)
    return user


def make_book(
    status: BookStatus = BookStatus.AVAILABLE,
    current_holder_id: uuid.UUID | None = None,
    created_by: uuid.UUID | None = None,
    **kwargs,
) -> Book:
    return Book(
        id=kwargs.pop("id", uuid.uuid4()),
        title=kwargs.pop("title", "Dom Casmurro"),
        author=kwargs.pop("author", "Machado de Assis"),
        status=status,
        max_reading_days=kwargs.pop("max_reading_days", 14),
        current_holder_id=current_holder_id,
        created_by=created_by,
        created_at=now(),
        updated_at=now(),
        **kwargs,
    )


def make_request(
    book: Book,
    user: User,
    status: RequestStatus = RequestStatus.PENDING,
    priority_score: float = 10.0,
    **kwargs,
) -> BookRequest:
    request = BookRequest(
        id=kwargs.pop("id", uuid.uuid4()),
        book_id=book.id,
        user_id=user.id,
        status=status,
        priority_score=priority_score,
        interest_match_score=kwargs.pop("interest_match_score", 0.0),
        distance_km=kwargs.pop("distance_km", None),
        requested_at=kwargs.pop("requested_at", now()),
        processed_at=kwargs.pop("processed_at", None),
        due_date=kwargs.pop("due_date", None),
        created_at=now(),
        updated_at=now(),
    )
    request.book = book
    request.user = user
    return request


def make_history(
    book: Book,
    reader_id: uuid.UUID,
    **kwargs,
) -> ReadingHistory:
    history = ReadingHistory(
        id=kwargs.pop("id", uuid.uuid4()),
        book_id=book.id,
        reader_id=reader_id,
        start_date=kwargs.pop("start_date", now() - timedelta(days=10)),
        end_date=kwargs.pop("end_date", None),
        due_date=kwargs.pop("due_date", now() + timedelta(days=4)),
        is_completed=kwargs.pop("is_completed", False),
        completed_at=kwargs.pop("completed_at", None),
        next_reader_id=kwargs.pop("next_reader_id", None),
        delivery_status=kwargs.pop("delivery_status", DeliveryStatus.NOT_STARTED),
        marked_delivered_at=kwargs.pop("marked_delivered_at", None),
        created_at=now(),
        updated_at=now(),
    )
    history.book = book
    return history


def make_thread(
    book: Book,
    current_holder_id: uuid.UUID,
    next_holder_id: uuid.UUID,
    **kwargs,
) -> HandoverThread:
    thread = HandoverThread(
        id=kwargs.pop("id", uuid.uuid4()),
        book_id=book.id,
        current_holder_id=current_holder_id,
        next_holder_id=next_holder_id,
        reading_history_id=kwargs.pop("reading_history_id", None),
        previous_book_status=kwargs.pop("previous_book_status", None),
        status=kwargs.pop("status", HandoverStatus.ACTIVE),
        handover_due_date=kwargs.pop("handover_due_date", now() + timedelta(days=14)),
        completed_at=kwargs.pop("completed_at", None),
        created_at=now(),
        updated_at=now(),
    )
    thread.book = book
    thread.messages = kwargs.pop("messages", [])
    return thread


def make_message(
    thread: HandoverThread,
    user_id: uuid.UUID,
    text: str = "Posso entregar amanhã",
    is_system_message: bool = False,
) -> HandoverMessage:
    return HandoverMessage(
        id=uuid.uuid4(),
        thread_id=thread.id,
        user_id=user_id,
        message=text,
        is_system_message=is_system_message,
        created_at=now(),
    )


# ==========================================
# Sample fixtures
# ==========================================

@pytest.fixture
def owner():
    """Membro que cadastrou o livro (primeiro portador)."""
    return make_user("Owner", success_score=60)


@pytest.fixture
def reader():
    """Leitor atual."""
    return make_user("Reader", success_score=40)


@pytest.fixture
def requester():
    """Membro que pede o livro."""
    return make_user("Requester", success_score=80)


@pytest.fixture
def available_book(owner):
    """Livro nunca lido, sem portador."""
    return make_book(BookStatus.AVAILABLE, created_by=owner.id)


@pytest.fixture
def reading_book(owner, reader):
    """Livro com o leitor atual."""
    return make_book(BookStatus.READING, current_holder_id=reader.id, created_by=owner.id)
