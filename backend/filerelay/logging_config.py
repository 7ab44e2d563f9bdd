"""Process-wide logging setup."""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # aiohttp access noise is not useful behind uvicorn
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
