# src/utils/logging_config.py
import logging
import sys

LOG_FORMAT = "[%(asctime)s] [%(name)s] %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level="INFO") -> logging.Logger:
    """
    루트 로거를 stdout 핸들러 하나로 설정합니다.

    Args:
        level: 로그 레벨 이름('DEBUG', 'INFO' 등) 또는 logging 모듈의 정수 레벨.

    Returns:
        애플리케이션 최상위 로거('src').
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # paramiko는 연결마다 INFO 로그를 많이 남기므로 경고 이상만 출력
    logging.getLogger("paramiko").setLevel(logging.WARNING)

    logger = logging.getLogger("src")
    logger.info("Logging initialized (level=%s)", logging.getLevelName(level))
    return logger
