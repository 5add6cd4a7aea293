import sys

from dotenv import load_dotenv
from loguru import logger

from tanbook.api.ledger_server import run_server
from tanbook.config import get_settings

load_dotenv()


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
    )


if __name__ == "__main__":
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(f"Starting ledger for {settings.salon_name}")
    run_server()
