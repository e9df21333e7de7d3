"""
Session module

Owns the per-connection protocol state and drives one request/response
exchange at a time:

    encode -> append AY/AZ -> write -> read until \\r -> strip AY/AZ -> decode

A validation failure resends the identical line and uses up one attempt.
An unsolicited ACS status is cached and the session keeps reading without
resending. Transport failures end the request immediately.
"""
import threading
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple

from loguru import logger

from .field_table import DEFAULT_FIELD_TERMINATOR
from .protocol_builder import (
    Message, MessageType, FieldCode, MESSAGE_TERMINATOR, LANGUAGE_UNKNOWN,
    build_sc_status, build_login,
)
from .protocol_parser import MessageDecoder, DecodeResult, Outcome, ParsedResponse
from .tcp_client import Transport
from .utils.checksum import append_integrity, next_sequence
from .utils.errors import ErrorCode


#Sequence value before the first sequenced message
SEQUENCE_UNSET = -1

#Login response flag meaning accepted
LOGIN_OK = '1'


@dataclass
class RequestResult:
    """Result of one request"""
    ok: bool
    response: Optional[ParsedResponse] = None
    error_code: ErrorCode = ErrorCode.SUCCESS
    attempts: int = 0
    failure: Optional[DecodeResult] = None


class Session:
    """SIP2 session bound to one transport"""

    DEFAULT_MAX_ATTEMPTS = 3
    #One byte per character, so the checksum matches the byte sum on the wire
    DEFAULT_ENCODING = 'latin-1'

    def __init__(self,
                 transport: Transport,
                 field_terminator: str = DEFAULT_FIELD_TERMINATOR,
                 sequencing: bool = True,
                 checksumming: bool = True,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                 institution_id: Optional[str] = None,
                 terminal_password: Optional[str] = None,
                 language: str = LANGUAGE_UNKNOWN,
                 adopt_institution_id: bool = True,
                 encoding: str = DEFAULT_ENCODING):
        """
        Args:
            transport: byte transport (write/read_byte/close)
            field_terminator: variable field terminator character
            sequencing: whether to send AY sequence tags
            checksumming: whether to send AZ checksum tags
            max_attempts: writes allowed per request before giving up
            institution_id: default AO value
            terminal_password: default AC value
            language: 3-character language code for requests that carry one
            adopt_institution_id: take AO from ACS status messages
            encoding: character encoding on the wire
        """
        if len(field_terminator) != 1:
            raise ValueError(f"Field terminator must be one character: {field_terminator!r}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1: {max_attempts}")

        self.transport = transport
        self.field_terminator = field_terminator
        self.sequencing = sequencing
        self.checksumming = checksumming
        self.max_attempts = max_attempts
        self.language = language
        self.adopt_institution_id = adopt_institution_id
        self.encoding = encoding

        self.sequence = SEQUENCE_UNSET
        self.acs_status: Optional[ParsedResponse] = None
        self.default_fields: Dict[str, Optional[str]] = {
            FieldCode.INSTITUTION_ID: institution_id,
            FieldCode.TERMINAL_PASSWORD: terminal_password,
        }

        self._decoder = MessageDecoder(field_terminator)
        self._lock = threading.Lock()

    @property
    def institution_id(self) -> Optional[str]:
        return self.default_fields.get(FieldCode.INSTITUTION_ID)

    @property
    def terminal_password(self) -> Optional[str]:
        return self.default_fields.get(FieldCode.TERMINAL_PASSWORD)

    def reset(self) -> None:
        """Forget per-connection state (call on every new connection)"""
        self.sequence = SEQUENCE_UNSET
        self.acs_status = None

    def encode(self, message: Message) -> bytes:
        """
        Encode a message into a complete line

        Advances the sequence counter when sequencing is enabled. Defaults
        are applied to a copy, the caller's message is left unchanged.

        Args:
            message: message to send

        Returns:
            bytes: body + AY/AZ tags + terminator
        """
        message = replace(message, fields=message.fields.copy())
        message.apply_defaults(self.default_fields)
        body = message.encode(self.field_terminator)

        sequence = None
        if self.sequencing:
            self.sequence = next_sequence(self.sequence)
            sequence = self.sequence

        line = append_integrity(body, sequence, self.checksumming) + MESSAGE_TERMINATOR
        return line.encode(self.encoding)

    def request(self, message: Message, expect_status: bool = False) -> RequestResult:
        """
        Send a message and wait for its response

        Args:
            message: message to send
            expect_status: an ACS status is the awaited response

        Returns:
            RequestResult
        """
        with self._lock:
            data = self.encode(message)
            return self._exchange(data, expect_status)

    def send_status(self) -> RequestResult:
        """Send an SC status and wait for the ACS status"""
        return self.request(build_sc_status(), expect_status=True)

    def login(self, username: str, password: str, location: Optional[str] = None) -> bool:
        """
        Log in to the ACS

        Args:
            username: login user id
            password: login password
            location: location code

        Returns:
            bool: whether the ACS accepted the login
        """
        result = self.request(build_login(username, password, location))
        if not result.ok:
            logger.error(f"Login request failed: {result.error_code.name}")
            return False

        if result.response.tag != MessageType.LOGIN_RESPONSE:
            logger.warning(f"Unexpected response to login: {result.response.tag}")
            return False

        if result.response.fixed.get('ok') != LOGIN_OK:
            logger.warning(f"Login refused for {username}")
            return False

        logger.info(f"Logged in as {username}")
        return True

    def _exchange(self, data: bytes, expect_status: bool) -> RequestResult:
        """Write/read loop for one encoded line"""
        attempts = 0
        failure: Optional[DecodeResult] = None

        while attempts < self.max_attempts:
            attempts += 1
            if not self.transport.write(data):
                logger.error("Write failed, abandoning request")
                return RequestResult(False, error_code=ErrorCode.TRANSPORT_FAILED, attempts=attempts)

            while True:
                line, ok = self._read_line()
                if not ok:
                    logger.error("Read failed, abandoning request")
                    return RequestResult(False, error_code=ErrorCode.TRANSPORT_FAILED,
                                         attempts=attempts, failure=failure)

                expected = self.sequence if self.sequencing else None
                result = self._decoder.decode(line, expected, expect_status)
                if result.outcome != Outcome.UNSOLICITED_STATUS:
                    break
                self._update_status(result.response)

            if result.ok:
                if result.tag == MessageType.ACS_STATUS:
                    self._update_status(result.response)
                return RequestResult(True, result.response, ErrorCode.SUCCESS, attempts)

            failure = result
            logger.warning(f"Attempt {attempts}/{self.max_attempts} failed: {result.error_code.name}")

        logger.error(f"Request failed after {attempts} attempts")
        return RequestResult(False, error_code=ErrorCode.REQUEST_FAILED, attempts=attempts, failure=failure)

    def _read_line(self) -> Tuple[str, bool]:
        """
        Read until the message terminator or end of stream

        Returns:
            (line without terminator, ok)
        """
        buffer = bytearray()
        terminator = MESSAGE_TERMINATOR.encode(self.encoding)
        while True:
            byte, ok = self.transport.read_byte()
            if not ok:
                return '', False
            if not byte or byte == terminator:
                break
            buffer += byte

        line = buffer.decode(self.encoding, errors='replace')
        logger.debug(f"Received: {line!r}")
        return line, True

    def _update_status(self, status: ParsedResponse) -> None:
        """Cache an ACS status and adopt its institution id"""
        self.acs_status = status
        institution_id = status.first(FieldCode.INSTITUTION_ID)
        if self.adopt_institution_id and institution_id:
            if institution_id != self.institution_id:
                logger.info(f"Using institution id from ACS status: {institution_id}")
            self.default_fields[FieldCode.INSTITUTION_ID] = institution_id
