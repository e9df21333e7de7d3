"""
Error code module

Defines every error code the client reports and its description
Code format: 0xXXYY
- XX: error category
- YY: specific error
"""
from enum import IntEnum


class ErrorCode(IntEnum):
    """Error code enumeration"""

    #No error
    SUCCESS = 0x0000

    #========== Transport errors (0x01xx) ==========
    TRANSPORT_FAILED = 0x0101          #write/read failed or timed out
    CONNECT_FAILED = 0x0102            #socket could not be connected
    NOT_CONNECTED = 0x0103             #operation attempted without a connection
    INVALID_ADDRESS = 0x0104           #host or port rejected before connecting

    #========== Validation errors (0x02xx) ==========
    CHECKSUM_MISMATCH = 0x0201         #AZ tag does not match the message
    SEQUENCE_MISMATCH = 0x0202         #AY tag does not match the session counter
    MESSAGE_TOO_SHORT = 0x0203         #no room for a message type
    RESEND_REQUESTED = 0x0204          #ACS answered with 96

    #========== Decode errors (0x03xx) ==========
    DECODE_FAILED = 0x0301             #fixed fields do not match the layout
    UNKNOWN_MESSAGE_TYPE = 0x0302      #tag not in the dispatch table

    #========== Protocol refusals (0x04xx) ==========
    LOGIN_REFUSED = 0x0401             #login response ok flag not 1
    PATRON_INVALID = 0x0402            #BL/CQ flags say no

    #========== Request errors (0x05xx) ==========
    REQUEST_FAILED = 0x0501            #all attempts used without a response

    #========== Unknown ==========
    UNKNOWN_ERROR = 0xFFFF


#Error code descriptions
ERROR_DESCRIPTIONS = {
    ErrorCode.SUCCESS: "Success",

    #Transport errors
    ErrorCode.TRANSPORT_FAILED: "Transport failure",
    ErrorCode.CONNECT_FAILED: "Connection failed",
    ErrorCode.NOT_CONNECTED: "Not connected",
    ErrorCode.INVALID_ADDRESS: "Invalid host or port",

    #Validation errors
    ErrorCode.CHECKSUM_MISMATCH: "Checksum mismatch",
    ErrorCode.SEQUENCE_MISMATCH: "Sequence number mismatch",
    ErrorCode.MESSAGE_TOO_SHORT: "Message too short",
    ErrorCode.RESEND_REQUESTED: "ACS requested a resend",

    #Decode errors
    ErrorCode.DECODE_FAILED: "Malformed message",
    ErrorCode.UNKNOWN_MESSAGE_TYPE: "Unknown message type",

    #Protocol refusals
    ErrorCode.LOGIN_REFUSED: "Login refused",
    ErrorCode.PATRON_INVALID: "Patron or PIN not valid",

    #Request errors
    ErrorCode.REQUEST_FAILED: "Request failed after all retries",

    ErrorCode.UNKNOWN_ERROR: "Unknown error",
}


def get_error_description(code: int) -> str:
    """
    Get the description of an error code

    Args:
        code: error code

    Returns:
        str: description text
    """
    try:
        error_code = ErrorCode(code)
        return ERROR_DESCRIPTIONS.get(error_code, f"Unknown error code: 0x{code:04X}")
    except ValueError:
        return f"Unknown error code: 0x{code:04X}"


def get_error_category(code: int) -> str:
    """
    Get the category name of an error code

    Args:
        code: error code

    Returns:
        str: category name
    """
    category = (code >> 8) & 0xFF
    categories = {
        0x00: "No error",
        0x01: "Transport error",
        0x02: "Validation error",
        0x03: "Decode error",
        0x04: "Protocol refusal",
        0x05: "Request error",
        0xFF: "Unknown error",
    }
    return categories.get(category, "Unknown category")


def is_success(code: int) -> bool:
    """True when the code means success"""
    return code == ErrorCode.SUCCESS


class Sip2Error(Exception):
    """Base class for errors raised by the client"""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN_ERROR):
        super().__init__(message)
        self.code = code


class DecodeError(Sip2Error):
    """Raised when a message cannot be built or split into its fields"""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.DECODE_FAILED):
        super().__init__(message, code)


class ConfigError(Sip2Error):
    """Raised for configuration that cannot be used"""
