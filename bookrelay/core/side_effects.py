"""
Execução de efeitos colaterais em modo best-effort.

Depois que a transição principal foi confirmada (commit), notificações,
pontuação e rejeições em cascata rodam aqui. Falhas são registradas em log
e nunca propagam: o sucesso da operação é a mudança de estado físico.

Uso:
    await best_effort(
        self.notifier.notify_request_approved(user_id, book_id, title),
        "notificar aprovação",
        session=self.db,
    )
"""

import logging
from typing import Any, Awaitable

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def best_effort(
    action: Awaitable[Any],
    description: str,
    session: AsyncSession | None = None,
) -> bool:
    """
    Aguarda um efeito colateral capturando qualquer falha.

    Args:
        action: Corrotina a executar
        description: Descrição curta usada no log
        session: Sessão a ser revertida se o efeito deixou escrita pendente

    Returns:
        True se executou sem erro, False caso contrário
    """
    try:
        await action
        return True
    except Exception as e:
        logger.warning(f"Falha ao {description}: {type(e).__name__}: {e}")
        if session is not None:
            try:
                await session.rollback()
            except Exception as rollback_error:
                logger.warning(f"Falha no rollback após '{description}': {rollback_error}")
        return False
