# logging_config.py
import logging
import os
from logging.handlers import RotatingFileHandler

from config.paths import LOG_FILE

FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"

_configured = False


def setup_logging(log_file: str = LOG_FILE, level: int = logging.INFO):
    """
    파일(로테이션) + 콘솔 로깅 설정

    여러 번 호출되어도 핸들러는 한 번만 등록됨
    """
    global _configured
    if _configured:
        return

    os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)

    handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8"
    )

    formatter = logging.Formatter(FORMAT)
    handler.setFormatter(formatter)

    console = logging.StreamHandler()  # 콘솔도 같이
    console.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler, console]
    )
    _configured = True
