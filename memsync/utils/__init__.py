"""
MemSync Utils - logging setup and ID generation.
"""

from memsync.utils.logging import setup_logging, get_logger, log_operation, log_error
from memsync.utils.ids import generate_id, is_valid_id

__all__ = [
    "setup_logging",
    "get_logger",
    "log_operation",
    "log_error",
    "generate_id",
    "is_valid_id",
]
