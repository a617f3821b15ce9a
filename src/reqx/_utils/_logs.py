import logging
import sys

LOGGER_NAME = "reqx"


def setup_logging(should_debug: bool = False) -> None:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if should_debug else logging.INFO)

    if not any(getattr(h, "_reqx_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
        handler._reqx_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
