import re

import pytest

from sip2client.utils.checksum import append_integrity


TIMESTAMP = '20261019    101500'

_SEQUENCE_RE = re.compile(r'AY(\d)(?:AZ[0-9A-F]{4})?\r$')


class FakeTransport:
    """
    Scripted transport

    Each scripted response is a ready line (str or raw bytes) or a callable taking the
    transport and returning one. Reading past the script fails like a
    receive timeout.
    """

    def __init__(self, responses=None, fail_write=False):
        self.responses = list(responses or [])
        self.fail_write = fail_write
        self.writes = []
        self.closed = False
        self._pending = bytearray()

    def write(self, data):
        if self.fail_write:
            return False
        self.writes.append(data)
        return True

    def read_byte(self):
        if not self._pending:
            if not self.responses:
                return b'', False
            item = self.responses.pop(0)
            if callable(item):
                item = item(self)
            self._pending.extend(item if isinstance(item, bytes) else item.encode('latin-1'))
            if not self._pending:
                return b'', True
        byte = bytes(self._pending[:1])
        del self._pending[:1]
        return byte, True

    def close(self):
        self.closed = True

    @property
    def last_sequence(self):
        match = _SEQUENCE_RE.search(self.writes[-1].decode('latin-1'))
        return int(match.group(1)) if match else None


def reply(body, sequence=None, checksum=True):
    """A complete response line"""
    return append_integrity(body, sequence, checksum) + '\r'


def echo(body, checksum=True):
    """A response tagged with the sequence of the last written message"""
    def build(transport):
        return reply(body, transport.last_sequence, checksum)
    return build


def corrupted(body):
    """A response whose checksum does not match its body"""
    line = reply(body)
    return line[:-5] + ('0000' if line[-5:-1] != '0000' else '1111') + '\r'


def acs_status_body(institution_id='MAIN'):
    return ('98YYYYNN005003' + TIMESTAMP + '2.00'
            + f'AO{institution_id}|AMMain Library|BXYYYYYYYYYYYYYYYY|')


def patron_information_body(valid='Y', pin_valid='Y'):
    return ('64' + ' ' * 14 + '000' + TIMESTAMP + '0000' * 6
            + f'AOMAIN|AA21234000012345|AEJane Doe|BL{valid}|CQ{pin_valid}|')


@pytest.fixture
def transport():
    return FakeTransport()
