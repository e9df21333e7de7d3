#-*- coding: utf-8 -*-
"""
TCP transport module

Features:
- Connect to the ACS
- Disconnect
- Write an encoded line
- Read the reply one byte at a time

Error handling:
- Connect timeout
- Address resolution failure
- Send/receive timeout (fatal to the current request)
- Connection reset or closed by the peer
"""

import ipaddress
import socket
import threading
from typing import Optional, Tuple
from loguru import logger

from .utils.errors import ErrorCode


class ConnectionState:
    """Connection state enumeration"""
    DISCONNECTED = 0  #not connected
    CONNECTING = 1    #connecting
    CONNECTED = 2     #connected


class Transport:
    """
    Byte transport used by a session

    write() reports success, read_byte() returns (byte, ok) where (b'', True)
    is end of stream and ok=False is an error or timeout.
    """

    def write(self, data: bytes) -> bool:
        raise NotImplementedError

    def read_byte(self) -> Tuple[bytes, bool]:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


class TcpTransport(Transport):
    """Blocking TCP transport"""

    #Default configuration
    DEFAULT_CONNECT_TIMEOUT = 5.0  #connect timeout (seconds)
    DEFAULT_RECV_TIMEOUT = 3.0  #receive timeout (seconds)
    DEFAULT_SEND_TIMEOUT = 6.0  #send timeout (seconds)

    def __init__(self, recv_timeout: float = DEFAULT_RECV_TIMEOUT,
                 send_timeout: float = DEFAULT_SEND_TIMEOUT):
        self._socket: Optional[socket.socket] = None
        self._state = ConnectionState.DISCONNECTED
        self._recv_timeout = recv_timeout
        self._send_timeout = send_timeout
        self._last_error = ErrorCode.SUCCESS

        #Server address
        self._host = ""
        self._port = 0

        self._lock = threading.Lock()

        #Statistics
        self._bytes_sent = 0
        self._bytes_received = 0
        self._lines_sent = 0

    @property
    def state(self) -> int:
        """Connection state"""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Whether connected"""
        return self._state == ConnectionState.CONNECTED

    @property
    def last_error(self) -> ErrorCode:
        """Error code of the last failed operation"""
        return self._last_error

    def get_statistics(self) -> dict:
        """
        Get statistics

        Returns:
            dict: statistics
        """
        return {
            "bytes_sent": self._bytes_sent,
            "bytes_received": self._bytes_received,
            "lines_sent": self._lines_sent,
        }

    def connect(self, host: str, port: int, timeout: float = DEFAULT_CONNECT_TIMEOUT) -> bool:
        """
        Connect to the ACS

        Args:
            host: server address
            port: server port
            timeout: connect timeout (seconds)

        Returns:
            whether the connection succeeded
        """
        if self._state != ConnectionState.DISCONNECTED:
            logger.warning("Already connected, closing the previous connection")
            self.close()

        #Validate parameters
        if not host or not str(host).strip():
            logger.error("Server address must not be empty")
            self._last_error = ErrorCode.INVALID_ADDRESS
            return False

        try:
            port = int(port)
        except (TypeError, ValueError):
            logger.error(f"Invalid port: {port}")
            self._last_error = ErrorCode.INVALID_ADDRESS
            return False

        if port < 1 or port > 65535:
            logger.error(f"Invalid port: {port}")
            self._last_error = ErrorCode.INVALID_ADDRESS
            return False

        self._host = str(host).strip()
        self._port = port
        self._state = ConnectionState.CONNECTING

        try:
            addr = socket.gethostbyname(self._host)
            if ipaddress.ip_address(addr).is_unspecified:
                logger.error(f"Address not usable: {self._host} -> {addr}")
                self._last_error = ErrorCode.INVALID_ADDRESS
                self._cleanup()
                return False

            self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self._socket.settimeout(timeout)
            self._socket.connect((addr, port))
            self._socket.settimeout(self._recv_timeout)

            #Disable Nagle, messages are short
            self._socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

            self._bytes_sent = 0
            self._bytes_received = 0
            self._lines_sent = 0

            self._state = ConnectionState.CONNECTED
            self._last_error = ErrorCode.SUCCESS
            logger.info(f"Connected: {self._host}:{port}")
            return True

        except socket.timeout:
            logger.error(f"Connect timed out: {self._host}:{port}")
            self._last_error = ErrorCode.CONNECT_FAILED
            self._cleanup()
            return False

        except socket.gaierror as e:
            logger.error(f"Address resolution failed: {self._host}, error: {e}")
            self._last_error = ErrorCode.INVALID_ADDRESS
            self._cleanup()
            return False

        except ConnectionRefusedError:
            logger.error(f"Connection refused: {self._host}:{port}")
            self._last_error = ErrorCode.CONNECT_FAILED
            self._cleanup()
            return False

        except OSError as e:
            logger.error(f"Connect failed: {self._host}:{port}, error: {e}")
            self._last_error = ErrorCode.CONNECT_FAILED
            self._cleanup()
            return False

    def write(self, data: bytes) -> bool:
        """
        Send data

        Args:
            data: bytes to send

        Returns:
            whether the send succeeded
        """
        if not self.is_connected:
            logger.warning("Not connected, cannot send")
            self._last_error = ErrorCode.NOT_CONNECTED
            return False

        with self._lock:
            try:
                self._socket.settimeout(self._send_timeout)
                self._socket.sendall(data)
                self._socket.settimeout(self._recv_timeout)
                self._bytes_sent += len(data)
                self._lines_sent += 1
                logger.debug(f"Sent: {data!r}")
                return True
            except socket.timeout:
                logger.error("Send timed out")
            except BrokenPipeError:
                logger.error("Connection closed (broken pipe)")
            except ConnectionResetError:
                logger.error("Connection reset")
            except OSError as e:
                logger.error(f"Send failed: {e}")

            self._last_error = ErrorCode.TRANSPORT_FAILED
            self._cleanup()
            return False

    def read_byte(self) -> Tuple[bytes, bool]:
        """
        Receive one byte

        Returns:
            (byte, True) on data, (b'', True) at end of stream,
            (b'', False) on timeout or error
        """
        if not self.is_connected:
            self._last_error = ErrorCode.NOT_CONNECTED
            return b'', False

        try:
            data = self._socket.recv(1)
        except socket.timeout:
            logger.error("Receive timed out")
            self._last_error = ErrorCode.TRANSPORT_FAILED
            return b'', False
        except ConnectionResetError:
            logger.error("Connection reset by server")
            self._last_error = ErrorCode.TRANSPORT_FAILED
            self._cleanup()
            return b'', False
        except OSError as e:
            logger.error(f"Receive failed: {e}")
            self._last_error = ErrorCode.TRANSPORT_FAILED
            self._cleanup()
            return b'', False

        if not data:
            logger.warning("Server closed the connection")
        self._bytes_received += len(data)
        return data, True

    def close(self) -> None:
        """Disconnect"""
        if self._state == ConnectionState.DISCONNECTED:
            return

        logger.info("Disconnecting")
        if self._socket:
            try:
                self._socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        self._cleanup()

    def _cleanup(self):
        """Release the socket"""
        if self._socket:
            try:
                self._socket.close()
            except OSError as e:
                logger.debug(f"Socket close error: {e}")
            self._socket = None
        self._state = ConnectionState.DISCONNECTED
