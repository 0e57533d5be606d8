"""
Logging for deployer runs.

One package logger (``marketplace_deployer``) collects every module's records:
- console output on stderr, so command output on stdout stays parseable
- a run log under ``logs/`` rotated at midnight
- a size-capped error log with file and line details
"""

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import Optional


LOG_DIR = Path(os.getenv("DEPLOYER_LOG_DIR", Path.cwd() / "logs"))
LOG_RETENTION_DAYS = 30
ERROR_LOG_MAX_BYTES = 10 * 1024 * 1024

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
SIMPLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str,
    level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    console: bool = True,
    detailed: bool = False,
) -> logging.Logger:
    """
    Attach console and file handlers to ``name`` once; later calls only adjust the level.

    Files are ``<log_dir>/<name>.log`` and ``<log_dir>/<name>_errors.log``.
    Child loggers (``logging.getLogger(__name__)`` inside the package)
    propagate here.

    Example:
        >>> logger = setup_logger("marketplace_deployer", level=logging.DEBUG)
        >>> logger.warning("Overwriting extension Offers Extension")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    log_dir = Path(log_dir or LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(DETAILED_FORMAT if detailed else SIMPLE_FORMAT, datefmt=DATE_FORMAT)

    handlers: list[tuple[logging.Handler, int, logging.Formatter]] = [
        (
            TimedRotatingFileHandler(
                log_dir / f"{name}.log", when="midnight", backupCount=LOG_RETENTION_DAYS, encoding="utf-8"
            ),
            level,
            formatter,
        ),
        (
            RotatingFileHandler(
                log_dir / f"{name}_errors.log", maxBytes=ERROR_LOG_MAX_BYTES, backupCount=5, encoding="utf-8"
            ),
            logging.ERROR,
            logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT),
        ),
    ]
    if console:
        handlers.insert(0, (logging.StreamHandler(sys.stderr), level, formatter))

    for handler, handler_level, handler_formatter in handlers:
        handler.setLevel(handler_level)
        handler.setFormatter(handler_formatter)
        logger.addHandler(handler)
    return logger


def log_deployment(
    logger: logging.Logger,
    label: str,
    address: Optional[str],
    block_number: Optional[int] = None,
    gas_used: Optional[int] = None,
    tx_hash: Optional[str] = None,
    success: bool = True,
):
    """
    Log a contract deployment in structured format.

    Args:
        logger: Logger instance
        label: Contract label (e.g. "MarketplaceV3")
        address: Deployed address
        block_number: Inclusion block, if known
        gas_used: Gas consumed, if known
        tx_hash: Creation transaction hash
        success: Whether the deployment succeeded
    """
    status = "DEPLOYED" if success else "FAILED"
    msg = (
        f"{status} | {label} | Address: {address or '-'} | "
        f"Block: {block_number if block_number is not None else 'N/A'} | "
        f"Gas: {f'{gas_used:,}' if gas_used is not None else 'N/A'}"
    )
    if tx_hash:
        msg += f" | TX: {tx_hash}"

    if success:
        logger.info(msg)
    else:
        logger.error(msg)


def get_cli_logger(debug: bool = False) -> logging.Logger:
    """Get the package logger configured for CLI runs."""
    level = logging.DEBUG if debug else logging.INFO
    return setup_logger("marketplace_deployer", level=level, detailed=debug)
