"""Logging configuration for folo-exporter."""
import logging
import logging.handlers
import sys
from pathlib import Path
from datetime import datetime, timedelta


def setup_logging(log_dir: Path, retention_days: int = 30, verbose: bool = False):
    """Configure dual logging handlers (file + console).

    The console handler writes to stderr because stdout carries export output.

    Args:
        log_dir: Directory for log files (created if missing)
        retention_days: How many days of logs to keep
        verbose: If True, set console to DEBUG level
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    cleanup_old_logs(log_dir, retention_days)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Repeated CLI invocations in one process must not stack handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # File handler - daily rotation, DEBUG level
    log_file = log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"
    file_handler = logging.handlers.TimedRotatingFileHandler(
        filename=log_file,
        when='midnight',
        interval=1,
        backupCount=retention_days,
        encoding='utf-8',
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter('[%(asctime)s] %(message)s', datefmt='%H:%M:%S'))
    root_logger.addHandler(console_handler)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.INFO)

    return root_logger


def cleanup_old_logs(log_dir: Path, retention_days: int):
    """Delete log files older than retention_days."""
    if not log_dir.exists():
        return

    cutoff_date = datetime.now() - timedelta(days=retention_days)

    for log_file in log_dir.glob('*.log'):
        try:
            # Parse YYYY-MM-DD.log format
            file_date = datetime.strptime(log_file.stem, '%Y-%m-%d')
            if file_date < cutoff_date:
                log_file.unlink()
                logging.debug(f"Deleted old log file: {log_file.name}")
        except (ValueError, OSError):
            continue
