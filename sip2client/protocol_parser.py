"""
Message parsing module

Validates, strips and decodes received messages
Pipeline: trim terminator -> checksum/sequence check -> type tag -> fixed fields -> variable fields
"""
from enum import Enum
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from loguru import logger

from .field_table import FieldTable, parse_variable_fields, DEFAULT_FIELD_TERMINATOR
from .protocol_builder import FixedField, MessageType, TIMESTAMP_WIDTH
from .utils.checksum import strip_integrity
from .utils.errors import ErrorCode, DecodeError


#Message type tag width
TAG_LENGTH = 2

#Noise trimmed from both ends of a received line
LINE_NOISE = '\r\n'


#Response layouts: tag -> fixed slots in order
RESPONSE_LAYOUTS: Dict[str, Tuple[FixedField, ...]] = {
    MessageType.PATRON_STATUS_RESPONSE: (
        FixedField('patron_status', 14),
        FixedField('language', 3),
        FixedField('transaction_date', TIMESTAMP_WIDTH),
    ),
    MessageType.FEE_PAID_RESPONSE: (
        FixedField('payment_accepted', 1),
        FixedField('transaction_date', TIMESTAMP_WIDTH),
    ),
    MessageType.PATRON_INFORMATION_RESPONSE: (
        FixedField('patron_status', 14),
        FixedField('language', 3),
        FixedField('transaction_date', TIMESTAMP_WIDTH),
        FixedField('hold_items_count', 4),
        FixedField('overdue_items_count', 4),
        FixedField('charged_items_count', 4),
        FixedField('fine_items_count', 4),
        FixedField('recall_items_count', 4),
        FixedField('unavailable_holds_count', 4),
    ),
    MessageType.LOGIN_RESPONSE: (
        FixedField('ok', 1),
    ),
    MessageType.REQUEST_SC_RESEND: (),
    MessageType.ACS_STATUS: (
        FixedField('online_status', 1),
        FixedField('checkin_ok', 1),
        FixedField('checkout_ok', 1),
        FixedField('renewal_policy', 1),
        FixedField('status_update_ok', 1),
        FixedField('offline_ok', 1),
        FixedField('timeout_period', 3),
        FixedField('retries_allowed', 3),
        FixedField('date_time_sync', TIMESTAMP_WIDTH),
        FixedField('protocol_version', 4),
    ),
}


class Outcome(Enum):
    """Result of one receive/decode cycle"""
    SUCCESS = 'success'
    VALIDATION_FAILED = 'validation_failed'
    UNSOLICITED_STATUS = 'unsolicited_status'


@dataclass
class ParsedResponse:
    """A decoded response"""
    tag: str
    fixed: Dict[str, str]
    fields: FieldTable = field(default_factory=FieldTable)
    raw: str = ''

    def __getitem__(self, key: str):
        """Variable values for a 2-character code, else the fixed slot value"""
        if key in self.fields:
            return self.fields.get(key)
        if key in self.fixed:
            return self.fixed[key]
        raise KeyError(key)

    def __contains__(self, key: str) -> bool:
        return key in self.fields or key in self.fixed

    def get(self, key: str, default=None):
        try:
            return self[key]
        except KeyError:
            return default

    def first(self, code: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.first(code, default)


@dataclass
class DecodeResult:
    """Outcome of decoding one line"""
    outcome: Outcome
    response: Optional[ParsedResponse] = None
    error_code: ErrorCode = ErrorCode.SUCCESS
    tag: Optional[str] = None
    line: str = ''

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS


def _extract_fixed(tag: str, message: str, terminator: str) -> ParsedResponse:
    """
    Split a message into its fixed slots and variable segment

    Raises:
        DecodeError: message shorter than the fixed prefix of its type
    """
    layout = RESPONSE_LAYOUTS[tag]
    prefix_length = TAG_LENGTH + sum(slot.width for slot in layout)
    if len(message) < prefix_length:
        raise DecodeError(f"Message {tag} shorter than its fixed fields: "
                          f"{len(message)} < {prefix_length}")

    fixed = {}
    offset = TAG_LENGTH
    for slot in layout:
        fixed[slot.name] = message[offset:offset + slot.width]
        offset += slot.width

    return ParsedResponse(tag, fixed, parse_variable_fields(message[offset:], terminator), message)


def _decode_fee_paid_response(message: str, terminator: str) -> ParsedResponse:
    response = _extract_fixed(MessageType.FEE_PAID_RESPONSE, message, terminator)
    if response.fixed['payment_accepted'] not in ('Y', 'N'):
        raise DecodeError(f"Payment accepted flag must be Y or N: "
                          f"{response.fixed['payment_accepted']!r}")
    return response


def _decode_resend(message: str, terminator: str) -> ParsedResponse:
    if message != MessageType.REQUEST_SC_RESEND:
        raise DecodeError(f"Request SC resend carries unexpected data: {message!r}")
    return ParsedResponse(MessageType.REQUEST_SC_RESEND, {}, FieldTable(), message)


def _generic_decoder(tag: str) -> Callable[[str, str], ParsedResponse]:
    def decode(message: str, terminator: str) -> ParsedResponse:
        return _extract_fixed(tag, message, terminator)
    return decode


#Dispatch table: tag -> decode function
DECODERS: Dict[str, Callable[[str, str], ParsedResponse]] = {
    MessageType.PATRON_STATUS_RESPONSE: _generic_decoder(MessageType.PATRON_STATUS_RESPONSE),
    MessageType.FEE_PAID_RESPONSE: _decode_fee_paid_response,
    MessageType.PATRON_INFORMATION_RESPONSE: _generic_decoder(MessageType.PATRON_INFORMATION_RESPONSE),
    MessageType.LOGIN_RESPONSE: _generic_decoder(MessageType.LOGIN_RESPONSE),
    MessageType.REQUEST_SC_RESEND: _decode_resend,
    MessageType.ACS_STATUS: _generic_decoder(MessageType.ACS_STATUS),
}


def decode_message(message: str, terminator: str = DEFAULT_FIELD_TERMINATOR) -> ParsedResponse:
    """
    Decode a message already stripped of its integrity suffixes

    Args:
        message: message text
        terminator: variable field terminator

    Returns:
        ParsedResponse

    Raises:
        DecodeError: unknown type tag or malformed fixed fields
    """
    tag = message[:TAG_LENGTH]
    decoder = DECODERS.get(tag)
    if decoder is None:
        raise DecodeError(f"Unknown message type: {tag!r}", ErrorCode.UNKNOWN_MESSAGE_TYPE)
    return decoder(message, terminator)


class MessageDecoder:
    """Received message decoder"""

    def __init__(self, field_terminator: str = DEFAULT_FIELD_TERMINATOR):
        self.field_terminator = field_terminator

    def decode(self, line: str, current_sequence: Optional[int], expect_status: bool = False) -> DecodeResult:
        """
        Validate and decode one received line

        Args:
            line: received line, terminator may still be attached
            current_sequence: the session's current sequence value, None when
                sequencing is off
            expect_status: whether an ACS status is the awaited response

        Returns:
            DecodeResult: never raises for malformed input
        """
        line = line.strip(LINE_NOISE)
        if len(line) < TAG_LENGTH:
            logger.warning(f"Message too short: {line!r}")
            return DecodeResult(Outcome.VALIDATION_FAILED, error_code=ErrorCode.MESSAGE_TOO_SHORT, line=line)

        message, error_code = strip_integrity(line, current_sequence)
        if message is None:
            logger.warning(f"Integrity check failed ({error_code.name}): {line!r}")
            return DecodeResult(Outcome.VALIDATION_FAILED, error_code=error_code, line=line)

        if len(message) < TAG_LENGTH:
            logger.warning(f"Message too short after stripping tags: {line!r}")
            return DecodeResult(Outcome.VALIDATION_FAILED, error_code=ErrorCode.MESSAGE_TOO_SHORT, line=line)

        tag = message[:TAG_LENGTH]
        try:
            response = decode_message(message, self.field_terminator)
        except DecodeError as e:
            logger.warning(f"Decode failed for {tag}: {e}")
            return DecodeResult(Outcome.VALIDATION_FAILED, error_code=e.code, tag=tag, line=line)

        if tag == MessageType.REQUEST_SC_RESEND:
            logger.info("ACS requested a resend")
            return DecodeResult(Outcome.VALIDATION_FAILED, response, ErrorCode.RESEND_REQUESTED, tag, line)

        if tag == MessageType.ACS_STATUS and not expect_status:
            logger.info("Unsolicited ACS status received")
            return DecodeResult(Outcome.UNSOLICITED_STATUS, response, ErrorCode.SUCCESS, tag, line)

        logger.debug(f"Decoded message {tag}: fixed={response.fixed}, fields={response.fields.to_dict()}")
        return DecodeResult(Outcome.SUCCESS, response, ErrorCode.SUCCESS, tag, line)
