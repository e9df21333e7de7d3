"""
utils package
"""
from .errors import (
    ErrorCode,
    get_error_description,
    get_error_category,
    is_success,
    Sip2Error,
    DecodeError,
    ConfigError,
)
from .checksum import (
    calculate_checksum,
    build_checksum_tag,
    verify_checksum,
    next_sequence,
    build_sequence_tag,
    append_integrity,
    strip_integrity,
)
from .logger import logger, setup_logger

__all__ = [
    'ErrorCode',
    'get_error_description',
    'get_error_category',
    'is_success',
    'Sip2Error',
    'DecodeError',
    'ConfigError',
    'calculate_checksum',
    'build_checksum_tag',
    'verify_checksum',
    'next_sequence',
    'build_sequence_tag',
    'append_integrity',
    'strip_integrity',
    'logger',
    'setup_logger',
]
