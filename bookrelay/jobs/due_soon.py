"""
Job da varredura de vencimentos próximos.

Uso:
    python -m bookrelay.jobs.due_soon
    python -m bookrelay.jobs.due_soon --days 3

Abre conversas de entrega para leituras que vencem dentro da janela e já
têm pedido aprovado na fila. Pode ser agendado em intervalos curtos: a
varredura é idempotente e protegida por lock no Redis.
"""

import argparse
import asyncio

from bookrelay.core.config import get_settings
from bookrelay.core.logging import get_logger, setup_logging
from bookrelay.db.redis import close_redis, init_redis
from bookrelay.db.session import async_session_factory, engine
from bookrelay.schemas.circulation import DueSoonScanResult
from bookrelay.services.due_soon import DueSoonScanner

# Nome fixo: executado com -m, __name__ seria "__main__", fora do logger do pacote
logger = get_logger("bookrelay.jobs.due_soon")
settings = get_settings()


async def run_scan(threshold_days: int | None = None) -> DueSoonScanResult:
    """Executa uma varredura numa sessão própria."""
    async with async_session_factory() as db:
        return await DueSoonScanner(db).run(threshold_days)


async def main(threshold_days: int | None = None) -> DueSoonScanResult:
    """Inicializa dependências, roda a varredura e libera conexões."""
    setup_logging()
    logger.info(f"Iniciando varredura de vencimentos ({settings.APP_NAME})")

    if settings.SCANNER_LOCK_ENABLED:
        try:
            await init_redis()
        except Exception as e:
            logger.warning(f"Redis indisponível, varredura sem lock: {e}")

    try:
        result = await run_scan(threshold_days)
    finally:
        await close_redis()
        await engine.dispose()

    logger.info(result.message or "Varredura não executada")
    return result


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Varredura de vencimentos próximos")
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help=f"Janela em dias (default: {settings.DUE_SOON_THRESHOLD_DAYS})",
    )
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(main(args.days))
