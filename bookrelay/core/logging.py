"""
Logging da circulação.

Os módulos usam get_logger(__name__); o job da varredura chama
setup_logging() uma vez para mandar os logs do pacote para stdout.
"""

import logging
import sys
from typing import Optional

from bookrelay.core.config import get_settings

PACKAGE_LOGGER = "bookrelay"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Bibliotecas que poluem a saída do job em INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "asyncpg", "redis")


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configura o logger do pacote (nível default: LOG_LEVEL do .env).

    Chamadas repetidas trocam o handler em vez de duplicá-lo.
    """
    log_level = (level or get_settings().LOG_LEVEL).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    package_logger.debug(f"Logging configurado com nível: {log_level}")
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger do módulo (use __name__)."""
    return logging.getLogger(name)
