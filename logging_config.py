import logging
import os


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the CLI only if nothing configured it yet.

    LOG_LEVEL wins over `level`; INFO when neither is set.
    basicConfig is only called when the root logger has no handlers so
    pytest's capture handlers are left alone.
    """
    chosen = (os.getenv("LOG_LEVEL") or level or "INFO").upper()
    lvl = getattr(logging, chosen, logging.INFO)
    root = logging.getLogger()

    if not root.handlers:
        logging.basicConfig(
            format='[%(asctime)s] %(levelname)s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
            level=lvl,
        )
    else:
        root.setLevel(lvl)
    # the OpenAI/httpx clients log every request at INFO
    logging.getLogger("httpx").setLevel(max(lvl, logging.WARNING))
