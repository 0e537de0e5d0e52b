"""
stockbook/utils/logging.py
──────────────────────────
Configures structured logging for production.
"""
import os
import logging
from logging.handlers import RotatingFileHandler
from flask import has_request_context, request


class RequestFormatter(logging.Formatter):
    """
    Custom formatter that injects request info (IP, URL, acting user)
    into logs if context is available.
    """
    def format(self, record):
        if has_request_context():
            record.url = request.url
            record.remote_addr = request.remote_addr
            record.user_id = request.headers.get('X-User-Id', '-')
        else:
            record.url = None
            record.remote_addr = None
            record.user_id = '-'
        return super().format(record)


def setup_logging(app):
    """
    Configure rotating file logging: logs/app.log
    Max size: 5MB
    Backup count: 5 files
    Format: timestamp | level | module | ip | user | url | message

    Module loggers (logging.getLogger(__name__) inside the package)
    propagate to app.logger, so they share these handlers.
    """
    # app.logger is process-wide; don't stack handlers per app instance
    if any(getattr(h, '_stockbook', False) for h in app.logger.handlers):
        return

    # 1. File Logger (skipped under testing and on read-only filesystems)
    if not app.testing:
        try:
            log_dir = os.path.join(app.root_path, '..', 'logs')
            os.makedirs(log_dir, exist_ok=True)

            file_handler = RotatingFileHandler(
                os.path.join(log_dir, 'app.log'),
                maxBytes=5 * 1024 * 1024,
                backupCount=5
            )
            file_handler.setFormatter(RequestFormatter(
                '%(asctime)s | %(levelname)s | %(name)s | %(remote_addr)s | '
                '%(user_id)s | %(url)s | %(message)s'
            ))
            file_handler.setLevel(logging.INFO)
            file_handler._stockbook = True
            app.logger.addHandler(file_handler)
        except OSError as exc:
            app.logger.warning(f"File logging disabled: {exc}")

    # 2. Stdout Logger (Critical for container/cloud logs)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
    ))
    stream_handler.setLevel(logging.INFO)
    stream_handler._stockbook = True
    app.logger.addHandler(stream_handler)

    app.logger.setLevel(logging.INFO)
    app.logger.info("Stockbook API startup")
