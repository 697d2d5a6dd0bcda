"""
Testes unitários para BookRequestService (fila de pedidos).
"""

import uuid
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from bookrelay.core.config import Settings
from bookrelay.core.exceptions import (
    AlreadyRequestedError,
    BookNotAvailableError,
    BookNotFoundError,
    RequestNotFoundError,
)
from bookrelay.models.enums import BookStatus, RequestStatus
from bookrelay.services.book_request import BookRequestService
from bookrelay.services.priority import PriorityCalculator

from conftest import make_book, make_request, make_user, now


async def fake_add(instance):
    """Simula o flush: o banco atribui o ID."""
    instance.id = uuid.uuid4()
    return instance


# ==========================================
# submit
# ==========================================

class TestSubmit:
    """Testes para BookRequestService.submit."""

    @pytest.mark.anyio
    async def test_submit_success(self, mock_db, available_book, requester):
        """Deve criar pedido PENDING com prioridade calculada."""
        service = BookRequestService(mock_db)

        with patch.object(service.book_repo, 'get_by_id', return_value=available_book), \
             patch.object(service.repo, 'get_pending_by_book_and_user', return_value=None), \
             patch.object(service.user_repo, 'get_by_id', return_value=requester), \
             patch.object(service.repo, 'add', side_effect=fake_add) as add:
            result = await service.submit(available_book.id, requester.id)

        assert result.status == RequestStatus.PENDING
        assert result.book_id == available_book.id
        assert result.user_id == requester.id
        assert result.priority_score == 50.0
        assert result.interest_match_score == 0.0
        assert result.requested_at is not None
        add.assert_awaited_once()
        mock_db.commit.assert_awaited_once()

    @pytest.mark.anyio
    async def test_submit_on_hold_book(self, mock_db, owner, reader, requester):
        """Livro ON_HOLD aceita pedidos com a política padrão."""
        book = make_book(BookStatus.ON_HOLD, current_holder_id=reader.id, created_by=owner.id)
        service = BookRequestService(mock_db)

        with patch.object(service.book_repo, 'get_by_id', return_value=book), \
             patch.object(service.repo, 'get_pending_by_book_and_user', return_value=None), \
             patch.object(service.user_repo, 'get_by_id', return_value=requester), \
             patch.object(service.repo, 'add', side_effect=fake_add):
            result = await service.submit(book.id, requester.id)

        assert result.status == RequestStatus.PENDING

    @pytest.mark.anyio
    async def test_submit_book_not_found(self, mock_db):
        """Deve levantar BookNotFoundError quando livro não existe."""
        service = BookRequestService(mock_db)

        with patch.object(service.book_repo, 'get_by_id', return_value=None):
            with pytest.raises(BookNotFoundError) as exc_info:
                await service.submit(uuid.uuid4(), uuid.uuid4())

        assert exc_info.value.status_code == 404

    @pytest.mark.anyio
    async def test_submit_reading_book_rejected_by_policy(self, mock_db, reading_book, requester):
        """Livro em leitura não aceita pedidos com available_only."""
        service = BookRequestService(mock_db)

        with patch.object(service.book_repo, 'get_by_id', return_value=reading_book):
            with pytest.raises(BookNotAvailableError) as exc_info:
                await service.submit(reading_book.id, requester.id)

        assert exc_info.value.status_code == 409
        assert "reading" in exc_info.value.detail
        mock_db.commit.assert_not_awaited()

    @pytest.mark.parametrize("status", [BookStatus.REQUESTED, BookStatus.RESERVED])
    @pytest.mark.anyio
    async def test_submit_unavailable_statuses(self, mock_db, owner, requester, status):
        """REQUESTED e RESERVED não aceitam pedidos com available_only."""
        book = make_book(status, created_by=owner.id)
        service = BookRequestService(mock_db)

        with patch.object(service.book_repo, 'get_by_id', return_value=book):
            with pytest.raises(BookNotAvailableError):
                await service.submit(book.id, requester.id)

    @pytest.mark.anyio
    async def test_submit_any_status_policy(self, mock_db, reading_book, requester):
        """Com any_status, livro em leitura aceita pedidos."""
        service = BookRequestService(mock_db)
        service.settings = Settings(REQUEST_POLICY="any_status")

        with patch.object(service.book_repo, 'get_by_id', return_value=reading_book), \
             patch.object(service.repo, 'get_pending_by_book_and_user', return_value=None), \
             patch.object(service.user_repo, 'get_by_id', return_value=requester), \
             patch.object(service.repo, 'add', side_effect=fake_add):
            result = await service.submit(reading_book.id, requester.id)

        assert result.status == RequestStatus.PENDING

    @pytest.mark.anyio
    async def test_submit_current_holder_cannot_request(self, mock_db, owner, reader):
        """Quem está com o livro não pode pedi-lo, mesmo com any_status."""
        book = make_book(BookStatus.ON_HOLD, current_holder_id=reader.id, created_by=owner.id)
        service = BookRequestService(mock_db)
        service.settings = Settings(REQUEST_POLICY="any_status")

        with patch.object(service.book_repo, 'get_by_id', return_value=book):
            with pytest.raises(BookNotAvailableError):
                await service.submit(book.id, reader.id)

    @pytest.mark.anyio
    async def test_submit_duplicate_pending(self, mock_db, available_book, requester):
        """Segundo pedido pendente do mesmo usuário deve falhar."""
        existing = make_request(available_book, requester)
        service = BookRequestService(mock_db)

        with patch.object(service.book_repo, 'get_by_id', return_value=available_book), \
             patch.object(service.repo, 'get_pending_by_book_and_user', return_value=existing), \
             patch.object(service.repo, 'add') as add:
            with pytest.raises(AlreadyRequestedError) as exc_info:
                await service.submit(available_book.id, requester.id)

        assert exc_info.value.status_code == 409
        add.assert_not_awaited()

    @pytest.mark.anyio
    async def test_submit_concurrent_duplicate(self, mock_db, available_book, requester):
        """Índice único violado por pedido concorrente vira AlreadyRequestedError."""
        service = BookRequestService(mock_db)
        error = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with patch.object(service.book_repo, 'get_by_id', return_value=available_book), \
             patch.object(service.repo, 'get_pending_by_book_and_user', return_value=None), \
             patch.object(service.user_repo, 'get_by_id', return_value=requester), \
             patch.object(service.repo, 'add', side_effect=error):
            with pytest.raises(AlreadyRequestedError):
                await service.submit(available_book.id, requester.id)

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()

    @pytest.mark.anyio
    async def test_submit_unknown_user_uses_zero_base(self, mock_db, available_book):
        """Sem registro do usuário, a base da prioridade é zero."""
        service = BookRequestService(mock_db)

        with patch.object(service.book_repo, 'get_by_id', return_value=available_book), \
             patch.object(service.repo, 'get_pending_by_book_and_user', return_value=None), \
             patch.object(service.user_repo, 'get_by_id', return_value=None), \
             patch.object(service.repo, 'add', side_effect=fake_add):
            result = await service.submit(available_book.id, uuid.uuid4())

        assert result.priority_score == PriorityCalculator(service.settings).calculate(0).score


# ==========================================
# cancel
# ==========================================

class TestCancel:
    """Testes para BookRequestService.cancel."""

    @pytest.mark.anyio
    async def test_cancel_success(self, mock_db):
        """Deve remover o pedido pendente e fazer commit."""
        service = BookRequestService(mock_db)
        book_id, user_id = uuid.uuid4(), uuid.uuid4()

        with patch.object(service.repo, 'delete_pending', return_value=1) as delete:
            await service.cancel(book_id, user_id)

        delete.assert_awaited_once_with(book_id, user_id)
        mock_db.commit.assert_awaited_once()

    @pytest.mark.anyio
    async def test_cancel_without_pending(self, mock_db):
        """Sem pedido pendente deve levantar RequestNotFoundError."""
        service = BookRequestService(mock_db)

        with patch.object(service.repo, 'delete_pending', return_value=0):
            with pytest.raises(RequestNotFoundError):
                await service.cancel(uuid.uuid4(), uuid.uuid4())

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()


# ==========================================
# Consultas
# ==========================================

class TestQueue:
    """Testes da fila de pedidos."""

    @pytest.mark.anyio
    async def test_rank_pending_positions(self, mock_db, available_book):
        """Fila mantém a ordem do repository e numera a partir de 1."""
        first = make_request(available_book, make_user("A"), priority_score=70.0)
        second = make_request(
            available_book,
            make_user("B"),
            priority_score=40.0,
            requested_at=now() - timedelta(days=2),
        )
        service = BookRequestService(mock_db)

        with patch.object(service.repo, 'get_ranked', return_value=[first, second]) as ranked:
            result = await service.rank_pending(available_book.id)

        ranked.assert_awaited_once_with(available_book.id, RequestStatus.PENDING)
        assert [r.id for r in result] == [first.id, second.id]
        assert [r.queue_position for r in result] == [1, 2]
        assert result[0].user_name == "A"
        assert result[0].book_title == available_book.title

    @pytest.mark.anyio
    async def test_has_pending_request(self, mock_db, available_book, requester):
        """Deve indicar se existe pedido pendente."""
        service = BookRequestService(mock_db)
        pending = make_request(available_book, requester)

        with patch.object(service.repo, 'get_pending_by_book_and_user', return_value=pending):
            assert await service.has_pending_request(available_book.id, requester.id) is True

        with patch.object(service.repo, 'get_pending_by_book_and_user', return_value=None):
            assert await service.has_pending_request(available_book.id, requester.id) is False

    @pytest.mark.anyio
    async def test_get_user_requests(self, mock_db, available_book, requester):
        """Deve listar pedidos do usuário."""
        service = BookRequestService(mock_db)
        requests = [
            make_request(available_book, requester, status=RequestStatus.APPROVED),
            make_request(available_book, requester, status=RequestStatus.REJECTED),
        ]

        with patch.object(service.repo, 'get_by_user', AsyncMock(return_value=requests)):
            result = await service.get_user_requests(requester.id)

        assert [r.status for r in result] == [RequestStatus.APPROVED, RequestStatus.REJECTED]
