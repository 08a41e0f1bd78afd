"""
Run configuration and logging setup for the CLI.
"""
from dataclasses import dataclass
import logging
from typing import Tuple

from correlation.correlator import ORDER_MERGED, ORDERS
from decoding.byte_filter import ByteFilter

OUTPUT_FORMATS = ("table", "jsonl")

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
LOGGER_NAME = "tcplatency"


@dataclass(frozen=True)
class CorrelationConfig:
    """Options for one correlation run."""
    first_path: str
    second_path: str
    print_rows: bool = True
    byte_filter: ByteFilter = ByteFilter()
    output_format: str = "table"
    order: str = ORDER_MERGED
    summary: bool = True

    def __post_init__(self):
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(f"output_format must be one of {OUTPUT_FORMATS}")
        if self.order not in ORDERS:
            raise ValueError(f"order must be one of {ORDERS}")

    @classmethod
    def from_options(cls, first_path: str, second_path: str,
                     filter_specs: Tuple[str, ...] = (), **options) -> "CorrelationConfig":
        return cls(first_path=first_path, second_path=second_path,
                   byte_filter=ByteFilter.parse(filter_specs), **options)


def log_level_for(verbosity: int) -> int:
    """0=WARNING, 1=INFO, 2+=DEBUG."""
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def configure_logging(verbosity: int = 0) -> logging.Logger:
    """Attach a stderr handler to the tcplatency logger hierarchy."""
    log_level = log_level_for(verbosity)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False

    # Repeated invocations in one process replace the handler
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(ch)
    return logger
