"""
SIP2 self-check client
"""
from .field_table import FieldTable, parse_variable_fields
from .protocol_builder import (
    Message,
    MessageType,
    FieldCode,
    sip_timestamp,
    build_summary,
    build_sc_status,
    build_login,
    build_patron_status,
    build_patron_information,
    build_fee_paid,
)
from .protocol_parser import (
    MessageDecoder,
    ParsedResponse,
    DecodeResult,
    Outcome,
    decode_message,
)
from .session import Session, RequestResult
from .tcp_client import Transport, TcpTransport
from .client import Sip2Client
from .config_manager import ConfigManager, get_config
from .utils.errors import ErrorCode, get_error_description, get_error_category
from .utils.checksum import calculate_checksum, append_integrity, strip_integrity

__version__ = '1.0.0'

__all__ = [
    'FieldTable',
    'parse_variable_fields',
    'Message',
    'MessageType',
    'FieldCode',
    'sip_timestamp',
    'build_summary',
    'build_sc_status',
    'build_login',
    'build_patron_status',
    'build_patron_information',
    'build_fee_paid',
    'MessageDecoder',
    'ParsedResponse',
    'DecodeResult',
    'Outcome',
    'decode_message',
    'Session',
    'RequestResult',
    'Transport',
    'TcpTransport',
    'Sip2Client',
    'ConfigManager',
    'get_config',
    'ErrorCode',
    'get_error_description',
    'get_error_category',
    'calculate_checksum',
    'append_integrity',
    'strip_integrity',
]
