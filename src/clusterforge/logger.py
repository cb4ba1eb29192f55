import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logger(
    name: str = "clusterforge", level: int = logging.WARNING
) -> logging.Logger:
    """Configures and returns a logger with RichHandler on stderr."""

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # One handler per logger, even if the module is imported by both the
    # CLI and the inline Pulumi program
    if not logger.handlers:
        handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            markup=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def set_verbose(verbose: bool) -> None:
    """Switches the package logger between WARNING and DEBUG."""
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


# Global logger instance (WARNING keeps previews quiet; --verbose lowers it)
logger = setup_logger()
