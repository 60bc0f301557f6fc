import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # SQL echo is controlled by the engine, not by the app log level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
