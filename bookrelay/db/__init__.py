"""
Módulo de banco de dados - conexões e sessões.

Exports:
    - Base: Classe base para modelos SQLAlchemy
    - engine: Engine async do SQLAlchemy
    - get_db: Gerador de sessão
    - create_schema: Cria as tabelas
    - init_redis / close_redis: Ciclo de vida do cliente Redis
"""

from bookrelay.db.session import (
    Base,
    engine,
    get_db,
    async_session_factory,
    create_schema,
    check_database_connection,
)
from bookrelay.db.redis import init_redis, close_redis, check_redis_connection

__all__ = [
    "Base",
    "engine",
    "get_db",
    "async_session_factory",
    "create_schema",
    "check_database_connection",
    "init_redis",
    "close_redis",
    "check_redis_connection",
]
