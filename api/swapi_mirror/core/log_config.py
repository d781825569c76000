"""
Configuracion de loguru para los procesos del pipeline.
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} - {message}"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Reemplaza los sinks por defecto de loguru.

    Args:
        level: Nivel minimo de log (DEBUG, INFO, WARNING...)
        log_file: Ruta del archivo de log con rotacion; None para solo stderr
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="500 MB",
            retention="10 days",
            level=level,
            format=LOG_FORMAT
        )
