import sys
from pathlib import Path
from loguru import logger


def setup_logger(
    log_file: str = "logs/sqledger.log",
    level: str = "INFO",
    rotation: str = "10 MB",
    retention: str = "7 days",
):
    logger.remove()

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logger.add(
        log_file,
        rotation=rotation,
        retention=retention,
        compression="zip",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {module}:{function}:{line} | {message}",
        backtrace=True,
        diagnose=False,
    )

    # Anything below CRITICAL on stderr would tear the full-screen UI.
    logger.add(
        sys.stderr,
        level="CRITICAL",
        format="{time:HH:mm:ss} | {level} | {message}",
    )

    logger.info(f"sqledger logger initialized (level={level}, rotation={rotation}, retention={retention})")
    return logger
