"""
Testes de integração da circulação.

Fluxos completos com banco PostgreSQL real: índices únicos parciais,
UPDATEs condicionais, lock de linha na aprovação e a consulta de pedidos
aprovados ainda não atendidos.
"""

import asyncio
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookrelay.core.exceptions import (
    AlreadyRequestedError,
    CirculationError,
    InvalidStateError,
)
from bookrelay.models.base import utcnow
from bookrelay.models.book import Book
from bookrelay.models.book_request import BookRequest
from bookrelay.models.enums import (
    BookStatus,
    DeliveryStatus,
    HandoverStatus,
    RequestStatus,
)
from bookrelay.models.handover import HandoverThread
from bookrelay.models.reading_history import ReadingHistory
from bookrelay.models.user import User
from bookrelay.schemas.circulation import ApprovalResult
from bookrelay.services.book_request import BookRequestService
from bookrelay.services.circulation import CirculationService
from bookrelay.services.due_soon import DueSoonScanner
from bookrelay.services.handover import HandoverService


async def create_user(db: AsyncSession, success_score: int = 50) -> User:
    """Cria usuário com email único."""
    suffix = uuid.uuid4().hex[:8]
    user = User(
        name=f"Leitor {suffix}",
        email=f"user_{suffix}@test.com",
        success_score=success_score,
    )
    db.add(user)
    await db.commit()
    return user


async def create_book(
    db: AsyncSession,
    owner: User,
    status: BookStatus = BookStatus.AVAILABLE,
    holder: User | None = None,
    max_reading_days: int = 3,
) -> Book:
    """Cria livro; prazo curto deixa a leitura dentro da janela da varredura."""
    book = Book(
        title=f"Livro {uuid.uuid4().hex[:8]}",
        author="Autor de Teste",
        status=status,
        max_reading_days=max_reading_days,
        current_holder_id=holder.id if holder else None,
        created_by=owner.id,
    )
    db.add(book)
    await db.commit()
    return book


async def request_and_approve(db: AsyncSession, book: Book, user: User) -> ApprovalResult:
    request = await BookRequestService(db).submit(book.id, user.id)
    return await CirculationService(db).approve(request.id)


async def reload_book(db: AsyncSession, book_id) -> Book:
    result = await db.execute(
        select(Book).where(Book.id == book_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def reload_request(db: AsyncSession, request_id) -> BookRequest:
    result = await db.execute(
        select(BookRequest)
        .where(BookRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def active_threads(db: AsyncSession, book_id) -> list[HandoverThread]:
    result = await db.execute(
        select(HandoverThread)
        .where(
            HandoverThread.book_id == book_id,
            HandoverThread.status == HandoverStatus.ACTIVE,
        )
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def count_threads(db: AsyncSession, book_id) -> int:
    result = await db.execute(
        select(func.count(HandoverThread.id)).where(HandoverThread.book_id == book_id)
    )
    return result.scalar_one()


# ==========================================
# Ciclo completo
# ==========================================

class TestCirculationFlow:
    """Aprovação, entrega e conclusão num banco real."""

    @pytest.mark.anyio
    async def test_approve_deliver_complete(self, test_db: AsyncSession):
        """Livro AVAILABLE -> REQUESTED -> READING -> ON_HOLD com o leitor."""
        owner = await create_user(test_db)
        reader = await create_user(test_db)
        book = await create_book(test_db, owner)

        approval = await request_and_approve(test_db, book, reader)

        assert approval.book_status == BookStatus.REQUESTED
        assert approval.current_holder_id == owner.id
        threads = await active_threads(test_db, book.id)
        assert [t.id for t in threads] == [approval.thread_id]
        assert threads[0].previous_book_status == BookStatus.AVAILABLE
        book = await reload_book(test_db, book.id)
        assert book.status == BookStatus.REQUESTED
        assert book.current_holder_id is None

        handover = HandoverService(test_db)
        delivery = await handover.mark_delivered(reader.id, book.id)

        assert delivery.previous_holder_id == owner.id
        book = await reload_book(test_db, book.id)
        assert book.status == BookStatus.READING
        assert book.current_holder_id == reader.id
        assert await active_threads(test_db, book.id) == []

        completion = await handover.mark_completed(reader.id, book.id)

        assert completion.book_status == BookStatus.ON_HOLD
        assert completion.next_reader_id is None
        book = await reload_book(test_db, book.id)
        assert book.status == BookStatus.ON_HOLD
        assert book.current_holder_id == reader.id

        history = await test_db.get(
            ReadingHistory,
            delivery.reading_history_id,
            populate_existing=True,
        )
        assert history.is_completed is True
        assert history.end_date is not None

    @pytest.mark.anyio
    async def test_approval_rejects_other_pending(self, test_db: AsyncSession):
        """Demais pedidos PENDING do livro são rejeitados após a aprovação."""
        owner = await create_user(test_db)
        first = await create_user(test_db, success_score=90)
        second = await create_user(test_db, success_score=10)
        book = await create_book(test_db, owner)

        requests = BookRequestService(test_db)
        winner = await requests.submit(book.id, first.id)
        loser = await requests.submit(book.id, second.id)

        approval = await CirculationService(test_db).approve(winner.id)

        assert approval.rejected_count == 1
        assert (await reload_request(test_db, loser.id)).status == RequestStatus.REJECTED


# ==========================================
# Aprovações repetidas e concorrentes
# ==========================================

class TestApprovalRaces:
    """Uma única conversa ativa por livro, mesmo sob disputa."""

    @pytest.mark.anyio
    async def test_double_approve(self, test_db: AsyncSession):
        """Segunda aprovação do mesmo pedido falha sem abrir outra conversa."""
        owner = await create_user(test_db)
        reader = await create_user(test_db)
        book = await create_book(test_db, owner)

        approval = await request_and_approve(test_db, book, reader)

        with pytest.raises(InvalidStateError):
            await CirculationService(test_db).approve(approval.request.id)

        assert await count_threads(test_db, book.id) == 1

    @pytest.mark.anyio
    async def test_concurrent_approvals_open_one_thread(
        self,
        test_db: AsyncSession,
        test_session_factory,
    ):
        """Duas aprovações simultâneas de pedidos diferentes: só uma vence."""
        owner = await create_user(test_db)
        first = await create_user(test_db)
        second = await create_user(test_db)
        book = await create_book(test_db, owner)

        requests = BookRequestService(test_db)
        first_request = await requests.submit(book.id, first.id)
        second_request = await requests.submit(book.id, second.id)

        async def approve(request_id):
            async with test_session_factory() as session:
                return await CirculationService(session).approve(request_id)

        results = await asyncio.gather(
            approve(first_request.id),
            approve(second_request.id),
            return_exceptions=True,
        )

        approved = [r for r in results if isinstance(r, ApprovalResult)]
        failed = [r for r in results if isinstance(r, CirculationError)]
        assert len(approved) == 1
        assert len(failed) == 1

        threads = await active_threads(test_db, book.id)
        assert len(threads) == 1
        assert threads[0].id == approved[0].thread_id
        assert (await reload_book(test_db, book.id)).status == BookStatus.REQUESTED

    @pytest.mark.anyio
    async def test_duplicate_pending_request(self, test_db: AsyncSession):
        """Índice único parcial: um pedido PENDING por usuário e livro."""
        owner = await create_user(test_db)
        reader = await create_user(test_db)
        book = await create_book(test_db, owner)

        await BookRequestService(test_db).submit(book.id, reader.id)

        with pytest.raises(AlreadyRequestedError):
            await BookRequestService(test_db).submit(book.id, reader.id)

        test_db.add(BookRequest(
            book_id=book.id,
            user_id=reader.id,
            status=RequestStatus.PENDING,
            requested_at=utcnow(),
        ))
        with pytest.raises(IntegrityError):
            await test_db.flush()
        await test_db.rollback()


# ==========================================
# Varredura de vencimentos
# ==========================================

async def start_reading(db: AsyncSession, owner: User, reader: User) -> Book:
    """Livro em READING com o leitor, vencendo dentro da janela."""
    book = await create_book(db, owner)
    await request_and_approve(db, book, reader)
    await HandoverService(db).mark_delivered(reader.id, book.id)
    return book


async def queue_approved(db: AsyncSession, book: Book, user: User) -> BookRequest:
    """Pedido aprovado na fila do leitor atual."""
    request = BookRequest(
        book_id=book.id,
        user_id=user.id,
        status=RequestStatus.APPROVED,
        priority_score=50.0,
        requested_at=utcnow() - timedelta(minutes=1),
        processed_at=utcnow(),
    )
    db.add(request)
    await db.commit()
    return request


class TestDueSoonScan:
    """Varredura contra o banco real."""

    @pytest.mark.anyio
    async def test_scan_twice_creates_one_thread(self, test_db: AsyncSession):
        """Segunda varredura não abre nova conversa."""
        owner = await create_user(test_db)
        reader = await create_user(test_db)
        successor = await create_user(test_db)
        book = await start_reading(test_db, owner, reader)
        await queue_approved(test_db, book, successor)

        first = await DueSoonScanner(test_db).scan()
        second = await DueSoonScanner(test_db).scan()

        assert first.threads_created >= 1
        assert second.threads_created == 0

        threads = await active_threads(test_db, book.id)
        assert len(threads) == 1
        assert threads[0].current_holder_id == reader.id
        assert threads[0].next_holder_id == successor.id
        assert threads[0].reading_history_id is not None

        history = await test_db.get(
            ReadingHistory,
            threads[0].reading_history_id,
            populate_existing=True,
        )
        assert history.next_reader_id == successor.id
        assert history.delivery_status == DeliveryStatus.NOT_STARTED

    @pytest.mark.anyio
    async def test_scan_skips_served_request(self, test_db: AsyncSession):
        """O pedido que levou o leitor atual ao livro não é escolhido de novo."""
        owner = await create_user(test_db)
        reader = await create_user(test_db)
        book = await start_reading(test_db, owner, reader)

        await DueSoonScanner(test_db).scan()

        assert await active_threads(test_db, book.id) == []


# ==========================================
# Cancelamento de conversa
# ==========================================

class TestCancelThreadIntegration:
    """Cancelamento restaura o livro e retira o pedido aprovado."""

    @pytest.mark.anyio
    async def test_cancelled_approval_not_picked_by_scan(self, test_db: AsyncSession):
        """Quem desistiu da entrega não vira sucessor na varredura."""
        owner = await create_user(test_db)
        holder = await create_user(test_db)
        withdrawn = await create_user(test_db)
        reader = await create_user(test_db)
        book = await create_book(test_db, owner, BookStatus.ON_HOLD, holder=holder)

        approval = await request_and_approve(test_db, book, withdrawn)
        await HandoverService(test_db).cancel_thread(approval.thread_id, withdrawn.id)

        book = await reload_book(test_db, book.id)
        assert book.status == BookStatus.ON_HOLD
        assert book.current_holder_id == holder.id
        withdrawn_request = await reload_request(test_db, approval.request.id)
        assert withdrawn_request.status == RequestStatus.REJECTED

        await request_and_approve(test_db, book, reader)
        await HandoverService(test_db).mark_delivered(reader.id, book.id)

        await DueSoonScanner(test_db).scan()

        assert await active_threads(test_db, book.id) == []

        returned = await CirculationService(test_db).return_book(book.id, reader.id)
        assert returned.book_status == BookStatus.AVAILABLE

    @pytest.mark.anyio
    async def test_cancel_after_return_restores_available(self, test_db: AsyncSession):
        """Livro devolvido volta para AVAILABLE, mesmo com leitura concluída."""
        owner = await create_user(test_db)
        previous = await create_user(test_db)
        last = await create_user(test_db)
        requester = await create_user(test_db)
        book = await create_book(test_db, owner)

        now = utcnow()
        test_db.add_all([
            ReadingHistory(
                book_id=book.id,
                reader_id=previous.id,
                start_date=now - timedelta(days=30),
                end_date=now - timedelta(days=20),
                is_completed=True,
                completed_at=now - timedelta(days=20),
            ),
            ReadingHistory(
                book_id=book.id,
                reader_id=last.id,
                start_date=now - timedelta(days=10),
                end_date=now - timedelta(days=2),
                is_completed=True,
                completed_at=now - timedelta(days=2),
            ),
        ])
        await test_db.commit()

        approval = await request_and_approve(test_db, book, requester)

        assert approval.current_holder_id == last.id

        await HandoverService(test_db).cancel_thread(approval.thread_id, last.id)

        book = await reload_book(test_db, book.id)
        assert book.status == BookStatus.AVAILABLE
        assert book.current_holder_id is None

    @pytest.mark.anyio
    async def test_return_refused_with_queued_approval(self, test_db: AsyncSession):
        """Pedido aprovado sem conversa ainda impede a devolução definitiva."""
        owner = await create_user(test_db)
        reader = await create_user(test_db)
        successor = await create_user(test_db)
        book = await start_reading(test_db, owner, reader)
        await queue_approved(test_db, book, successor)

        with pytest.raises(InvalidStateError):
            await CirculationService(test_db).return_book(book.id, reader.id)

        assert (await reload_book(test_db, book.id)).status == BookStatus.READING
