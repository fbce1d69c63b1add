# spotifetch/utils/__init__.py
"""
Utilities package
Logging setup and small helpers shared across spotifetch
"""

from .logger import (
    get_logger,
    configure_from_settings,
    setup_logging,
    OperationLogger,
    create_operation_logger,
)
from .helpers import (
    chunked,
    ceil_div,
    mask_secret,
    resolve_url,
    unique_ids,
)

__all__ = [
    # Logger exports
    'get_logger',
    'configure_from_settings',
    'setup_logging',
    'OperationLogger',
    'create_operation_logger',

    # Helper exports
    'chunked',
    'ceil_div',
    'mask_secret',
    'resolve_url',
    'unique_ids',
]
