"""
Checksum and sequence tag module

Appends and validates the integrity suffixes of a SIP2 message
Suffix order: [body] AY<seq> AZ<checksum>
Checksum range: body + sequence tag + the literal "AZ"
"""
import re
from typing import Optional, Tuple

from .errors import ErrorCode


SEQUENCE_PREFIX = 'AY'
CHECKSUM_PREFIX = 'AZ'

#Sequence counter wraps at 10 (single digit)
SEQUENCE_MODULUS = 10

_CHECKSUM_RE = re.compile(r'^(.*)AZ(.{4})$', re.DOTALL)
_SEQUENCE_RE = re.compile(r'^(.*)AY(.)$', re.DOTALL)


def calculate_checksum(data: str) -> int:
    """
    Calculate the checksum value

    Sum of the character codes of the data followed by "AZ",
    negated and masked to 16 bits.

    Args:
        data: message text preceding the checksum tag

    Returns:
        int: checksum value (0-0xFFFF)
    """
    total = 0
    for char in data + CHECKSUM_PREFIX:
        total += ord(char)
    return -total & 0xFFFF


def build_checksum_tag(data: str) -> str:
    """
    Build the checksum tag for a message

    Args:
        data: message text preceding the checksum tag

    Returns:
        str: "AZ" followed by 4 uppercase hex digits
    """
    return f"{CHECKSUM_PREFIX}{calculate_checksum(data):04X}"


def verify_checksum(data: str, tag_digits: str) -> bool:
    """
    Verify a received checksum

    Args:
        data: message text preceding the checksum tag
        tag_digits: the 4 characters following "AZ"

    Returns:
        bool: whether the checksum matches
    """
    return f"{calculate_checksum(data):04X}" == tag_digits.upper()


def next_sequence(current: int) -> int:
    """Advance a sequence counter; -1 (unset) becomes 0"""
    return (current + 1) % SEQUENCE_MODULUS


def build_sequence_tag(sequence: int) -> str:
    """Build the "AY" tag for a sequence value"""
    return f"{SEQUENCE_PREFIX}{sequence}"


def append_integrity(body: str, sequence: Optional[int] = None, checksum: bool = True) -> str:
    """
    Append the integrity suffixes to an encoded body

    Args:
        body: encoded message body
        sequence: sequence value to tag with, None for no sequence tag
        checksum: whether to append the checksum tag

    Returns:
        str: message with suffixes, without the line terminator
    """
    message = body
    if sequence is not None:
        message += build_sequence_tag(sequence)
    if checksum:
        message += build_checksum_tag(message)
    return message


def strip_integrity(message: str, current_sequence: Optional[int]) -> Tuple[Optional[str], ErrorCode]:
    """
    Validate and remove the integrity suffixes of a received message

    A checksum tag, when present, is always validated. The sequence tag,
    when present after that, must equal the session's current value.
    Absent tags are not errors.

    Args:
        message: received line without terminator
        current_sequence: the session's current sequence value, None to
            strip the sequence tag without comparing it

    Returns:
        Tuple[Optional[str], ErrorCode]: (stripped message, SUCCESS) or (None, error code)
    """
    match = _CHECKSUM_RE.match(message)
    if match:
        if not verify_checksum(match.group(1), match.group(2)):
            return None, ErrorCode.CHECKSUM_MISMATCH
        message = match.group(1)

    match = _SEQUENCE_RE.match(message)
    if match:
        if current_sequence is not None and match.group(2) != str(current_sequence):
            return None, ErrorCode.SEQUENCE_MISMATCH
        message = match.group(1)

    return message, ErrorCode.SUCCESS
