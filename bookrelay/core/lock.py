"""
Lock distribuído simples usando Redis (SET NX EX).

Usado pela varredura de vencimentos próximos para evitar duas execuções
simultâneas em instâncias diferentes. Se o Redis não estiver disponível,
o lock é liberado sem bloquear (fail-open): a varredura é idempotente.

Configurável via variáveis de ambiente:
    - SCANNER_LOCK_ENABLED: bool (default: True)
    - SCANNER_LOCK_TTL_SECONDS: int (default: 300)

Uso:
    lock = RedisLock("due_soon_scan")
    if not await lock.acquire():
        return  # outra instância está rodando
    try:
        ...
    finally:
        await lock.release()
"""

import logging
import uuid
from typing import Optional

from bookrelay.core.config import get_settings
from bookrelay.db import redis as redis_db

logger = logging.getLogger(__name__)
settings = get_settings()

# Libera somente se o token ainda for o nosso
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisLock:
    """
    Lock com expiração automática.

    Args:
        name: Nome lógico do lock
        ttl: Tempo de vida em segundos (default: config)
        key_prefix: Prefixo da chave no Redis
    """

    def __init__(
        self,
        name: str,
        ttl: Optional[int] = None,
        key_prefix: str = "lock",
    ):
        self.key = f"{key_prefix}:{name}"
        self.ttl = ttl or settings.SCANNER_LOCK_TTL_SECONDS
        self.token = uuid.uuid4().hex
        self.held = False

    async def acquire(self) -> bool:
        """
        Tenta adquirir o lock.

        Returns:
            True se adquiriu (ou se o lock está desabilitado/indisponível),
            False se outra instância detém o lock
        """
        if not settings.SCANNER_LOCK_ENABLED or redis_db.redis_client is None:
            return True

        try:
            acquired = await redis_db.redis_client.set(
                self.key,
                self.token,
                nx=True,
                ex=self.ttl,
            )
        except Exception as e:
            logger.warning(f"Erro ao adquirir lock {self.key}: {e}")
            return True

        self.held = bool(acquired)
        return self.held

    async def release(self) -> None:
        """Libera o lock se ele pertence a esta instância."""
        if not self.held or redis_db.redis_client is None:
            return

        try:
            await redis_db.redis_client.eval(RELEASE_SCRIPT, 1, self.key, self.token)
        except Exception as e:
            logger.warning(f"Erro ao liberar lock {self.key}: {e}")
        finally:
            self.held = False
