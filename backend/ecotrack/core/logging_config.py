"""Configuration du système de logging centralisé."""

import glob
import logging
import logging.handlers
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from ecotrack.core.settings import get_settings

GENERIC_LOGGER = "ecotrack"
ERROR_LOGGER = "ecotrack.errors"


def setup_logging(logs_dir: Path, retention_days: int = 30) -> tuple[logging.Logger, logging.Logger]:
    """Configure le système de logging avec rotation quotidienne.

    Returns:
        tuple: (logger_generic, logger_errors)
    """
    logs_dir.mkdir(parents=True, exist_ok=True)

    # Nettoyage des logs anciens
    cleanup_old_logs(logs_dir, retention_days)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Logger générique (INFO+) ; les loggers de modules `ecotrack.*` y remontent
    generic_logger = logging.getLogger(GENERIC_LOGGER)
    generic_logger.setLevel(logging.INFO)

    if not generic_logger.handlers:  # Éviter les doublons
        generic_handler = logging.handlers.TimedRotatingFileHandler(
            filename=logs_dir / "generic.log",
            when="midnight",
            interval=1,
            encoding="utf-8"
        )
        generic_handler.suffix = "%Y-%m-%d"
        generic_handler.setFormatter(formatter)
        generic_logger.addHandler(generic_handler)

    # Logger erreurs (ERROR+)
    error_logger = logging.getLogger(ERROR_LOGGER)
    error_logger.setLevel(logging.ERROR)

    if not error_logger.handlers:
        error_handler = logging.handlers.TimedRotatingFileHandler(
            filename=logs_dir / "errors.log",
            when="midnight",
            interval=1,
            encoding="utf-8"
        )
        error_handler.suffix = "%Y-%m-%d"
        error_handler.setFormatter(formatter)
        error_logger.addHandler(error_handler)

    return generic_logger, error_logger


def cleanup_old_logs(logs_dir: Path, retention_days: int = 30) -> None:
    """Supprime les fichiers de log tournés plus anciens que retention_days."""
    cutoff = datetime.now() - timedelta(days=retention_days)

    for pattern in (f"{logs_dir}/generic.log.*", f"{logs_dir}/errors.log.*"):
        for file_path in glob.glob(pattern):
            # Suffixe de rotation : generic.log.YYYY-MM-DD
            date_part = os.path.basename(file_path).rsplit(".", 1)[-1]
            try:
                if datetime.strptime(date_part, "%Y-%m-%d") < cutoff:
                    os.remove(file_path)
            except (ValueError, OSError):
                continue


# Instance globale (lazy initialization)
_loggers: Optional[tuple[logging.Logger, logging.Logger]] = None


def get_loggers() -> tuple[logging.Logger, logging.Logger]:
    """Retourne les loggers configurés (singleton)."""
    global _loggers
    if _loggers is None:
        settings = get_settings()
        _loggers = setup_logging(Path(settings.log_dir), settings.log_retention_days)
    return _loggers
