"""
Testes do job da varredura de vencimentos.
"""

from unittest.mock import AsyncMock, patch

import pytest

from bookrelay.jobs import due_soon as job
from bookrelay.schemas.circulation import DueSoonScanResult


class TestDueSoonJob:
    """Testes para bookrelay.jobs.due_soon."""

    def test_parse_args_default(self):
        assert job.parse_args([]).days is None

    def test_parse_args_days(self):
        assert job.parse_args(["--days", "3"]).days == 3

    @pytest.mark.anyio
    async def test_main_releases_connections(self):
        """Conexões são liberadas ao final da varredura."""
        expected = DueSoonScanResult(scanned=2, threads_created=1, message="ok")

        with patch.object(job, 'setup_logging'), \
             patch.object(job, 'init_redis', AsyncMock()), \
             patch.object(job, 'close_redis', AsyncMock()) as close_redis, \
             patch.object(job, 'engine') as engine, \
             patch.object(job, 'run_scan', AsyncMock(return_value=expected)) as run_scan:
            engine.dispose = AsyncMock()
            result = await job.main(5)

        assert result == expected
        run_scan.assert_awaited_once_with(5)
        close_redis.assert_awaited_once()
        engine.dispose.assert_awaited_once()

    @pytest.mark.anyio
    async def test_main_runs_without_redis(self):
        """Redis indisponível: a varredura roda sem lock."""
        expected = DueSoonScanResult(message="ok")

        with patch.object(job, 'setup_logging'), \
             patch.object(job, 'init_redis', AsyncMock(side_effect=ConnectionError("refused"))), \
             patch.object(job, 'close_redis', AsyncMock()), \
             patch.object(job, 'engine') as engine, \
             patch.object(job, 'run_scan', AsyncMock(return_value=expected)) as run_scan:
            engine.dispose = AsyncMock()
            result = await job.main()

        assert result == expected
        run_scan.assert_awaited_once_with(None)
