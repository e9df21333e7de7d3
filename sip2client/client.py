"""
SIP2 client module

Combines a TCP transport and a session into the operations a self-check
terminal needs: connect (login + initial status), patron status, patron
information and fee payment.
"""
from typing import Optional

from loguru import logger

from .config_manager import ConfigManager
from .field_table import DEFAULT_FIELD_TERMINATOR
from .protocol_builder import (
    FieldCode, LANGUAGE_UNKNOWN,
    build_patron_status, build_patron_information, build_fee_paid, build_summary,
)
from .protocol_parser import ParsedResponse
from .session import Session, RequestResult
from .tcp_client import TcpTransport, Transport
from .utils.errors import ErrorCode


class Sip2Client:
    """SIP2 self-check client"""

    def __init__(self,
                 transport: Optional[Transport] = None,
                 field_terminator: str = DEFAULT_FIELD_TERMINATOR,
                 sequencing: bool = True,
                 checksumming: bool = True,
                 max_attempts: int = Session.DEFAULT_MAX_ATTEMPTS,
                 institution_id: Optional[str] = None,
                 terminal_password: Optional[str] = None,
                 location: Optional[str] = None,
                 language: str = LANGUAGE_UNKNOWN,
                 connect_timeout: float = TcpTransport.DEFAULT_CONNECT_TIMEOUT):
        self.transport = transport if transport is not None else TcpTransport()
        self.session = Session(
            self.transport,
            field_terminator=field_terminator,
            sequencing=sequencing,
            checksumming=checksumming,
            max_attempts=max_attempts,
            institution_id=institution_id or None,
            terminal_password=terminal_password or None,
            language=language,
        )
        self.location = location or None
        self.connect_timeout = connect_timeout
        self.last_error = ErrorCode.SUCCESS
        self._connected = False

    @classmethod
    def from_config(cls, config: ConfigManager) -> "Sip2Client":
        """
        Build a client from configuration

        Args:
            config: configuration manager

        Returns:
            Sip2Client
        """
        transport = TcpTransport(recv_timeout=config.recv_timeout, send_timeout=config.send_timeout)
        return cls(
            transport,
            field_terminator=config.sip_field_terminator,
            sequencing=config.sip_sequencing,
            checksumming=config.sip_checksumming,
            max_attempts=config.sip_max_attempts,
            institution_id=config.sip_institution_id,
            terminal_password=config.sip_terminal_password,
            location=config.sip_location,
            language=config.sip_language,
            connect_timeout=config.connect_timeout,
        )

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def acs_status(self) -> Optional[ParsedResponse]:
        """Last ACS status seen on this connection"""
        return self.session.acs_status

    def connect(self, host: str, port: int,
                username: Optional[str] = None, password: Optional[str] = None) -> bool:
        """
        Connect to the ACS

        Logs in first when both username and password are given, then
        sends the initial SC status.

        Args:
            host: ACS host
            port: ACS port
            username: login user id
            password: login password

        Returns:
            whether the client is ready for requests
        """
        if self._connected:
            self.disconnect()

        if isinstance(self.transport, TcpTransport):
            if not self.transport.connect(host, port, self.connect_timeout):
                self.last_error = self.transport.last_error
                return False

        self.session.reset()
        self._connected = True

        if username and password:
            if not self.session.login(username, password, self.location):
                self.last_error = ErrorCode.LOGIN_REFUSED
                self.disconnect()
                return False

        result = self.send_status()
        if not result.ok:
            self.last_error = result.error_code
            self.disconnect()
            return False

        self.last_error = ErrorCode.SUCCESS
        return True

    def disconnect(self) -> None:
        """Close the connection"""
        self._connected = False
        self.transport.close()

    def send_status(self) -> RequestResult:
        """Send an SC status, returns the ACS status"""
        return self._request(self.session.send_status)

    def patron_status(self, barcode: str, pin: Optional[str] = None) -> RequestResult:
        """
        Patron status request

        Args:
            barcode: patron identifier
            pin: patron password

        Returns:
            RequestResult with the 24 response
        """
        message = build_patron_status(barcode, pin, language=self.session.language)
        return self._request(self.session.request, message)

    def patron_information(self, barcode: str, pin: Optional[str] = None,
                           summary_type: Optional[str] = None,
                           start_item: Optional[int] = None,
                           end_item: Optional[int] = None) -> RequestResult:
        """
        Patron information request

        Args:
            barcode: patron identifier
            pin: patron password
            summary_type: summary category, see protocol_builder.SUMMARY_TYPES
            start_item: first item of the detail range
            end_item: last item of the detail range

        Returns:
            RequestResult with the 64 response
        """
        message = build_patron_information(
            barcode, pin,
            summary=build_summary(summary_type),
            start_item=start_item,
            end_item=end_item,
            language=self.session.language,
        )
        return self._request(self.session.request, message)

    def pay_fee(self, fee_type, payment_type, currency: str, fee_amount, barcode: str,
                pin: Optional[str] = None, fee_id: Optional[str] = None,
                transaction_id: Optional[str] = None) -> RequestResult:
        """
        Fee paid message

        Args:
            fee_type: fee type code, an int is zero-padded (1 -> "01")
            payment_type: payment type code, padded like fee_type
            currency: 3-letter currency code
            fee_amount: amount paid
            barcode: patron identifier
            pin: patron password
            fee_id: fee identifier
            transaction_id: transaction id

        Returns:
            RequestResult with the 38 response
        """
        message = build_fee_paid(fee_type, payment_type, currency, fee_amount, barcode,
                                 patron_password=pin, fee_id=fee_id, transaction_id=transaction_id)
        return self._request(self.session.request, message)

    def patron_information_if_valid(self, barcode: str, pin: Optional[str] = None,
                                    summary_type: Optional[str] = None,
                                    start_item: Optional[int] = None,
                                    end_item: Optional[int] = None) -> Optional[ParsedResponse]:
        """
        Patron information, only when the patron (and pin, if given) is valid

        Returns:
            the 64 response, or None
        """
        result = self.patron_information(barcode, pin, summary_type, start_item, end_item)
        if not result.ok:
            return None

        info = result.response
        if info.first(FieldCode.VALID_PATRON) != 'Y':
            logger.info(f"Patron not valid: {barcode}")
            self.last_error = ErrorCode.PATRON_INVALID
            return None
        if pin is not None and info.first(FieldCode.VALID_PATRON_PASSWORD) != 'Y':
            logger.info(f"Patron password not valid: {barcode}")
            self.last_error = ErrorCode.PATRON_INVALID
            return None
        return info

    def patron_valid(self, barcode: str, pin: Optional[str] = None) -> bool:
        """Whether the patron and pin are valid"""
        return self.patron_information_if_valid(barcode, pin) is not None

    def _request(self, send, *args) -> RequestResult:
        if not self._connected:
            logger.warning("Not connected, request skipped")
            self.last_error = ErrorCode.NOT_CONNECTED
            return RequestResult(False, error_code=ErrorCode.NOT_CONNECTED)

        result = send(*args)
        self.last_error = result.error_code
        if result.error_code == ErrorCode.TRANSPORT_FAILED:
            self.disconnect()
        return result
