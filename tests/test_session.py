import pytest

from sip2client.protocol_builder import build_patron_information, build_sc_status
from sip2client.protocol_parser import Outcome
from sip2client.session import Session
from sip2client.utils.checksum import strip_integrity
from sip2client.utils.errors import ErrorCode

from conftest import (
    FakeTransport, TIMESTAMP, reply, echo, corrupted,
    acs_status_body, patron_information_body,
)


def test_encode_appends_sequence_checksum_and_bare_cr(transport):
    session = Session(transport)
    data = session.encode(build_sc_status())
    assert data == b'9900802.00AY0AZFCA1\r'
    text = data.decode()
    assert text.endswith('\r') and not text.endswith('\n\r')
    assert '\n' not in text
    assert strip_integrity(text[:-1], 0) == ('9900802.00', ErrorCode.SUCCESS)
    assert session.sequence == 0


def test_encode_without_sequence_or_checksum(transport):
    session = Session(transport, sequencing=False, checksumming=False)
    assert session.encode(build_sc_status()) == b'9900802.00\r'
    assert session.sequence == -1


def test_status_request_succeeds_on_acs_status():
    transport = FakeTransport([echo(acs_status_body())])
    session = Session(transport)

    result = session.send_status()

    assert result.ok
    assert result.attempts == 1
    assert result.response.tag == '98'
    assert session.acs_status is result.response
    assert session.institution_id == 'MAIN'


def test_sequence_increments_per_exchange():
    transport = FakeTransport([echo(acs_status_body()) for _ in range(12)])
    session = Session(transport)

    for _ in range(12):
        assert session.send_status().ok

    observed = [int(data.decode()[-8]) for data in transport.writes]
    assert observed == [k % 10 for k in range(12)]


def test_unsolicited_status_does_not_use_an_attempt():
    transport = FakeTransport([
        echo(acs_status_body('BRANCH')),
        echo(patron_information_body()),
    ])
    session = Session(transport, max_attempts=1)

    result = session.request(build_patron_information('21234000012345', timestamp=TIMESTAMP))

    assert result.ok
    assert result.response.tag == '64'
    assert result.attempts == 1
    assert len(transport.writes) == 1
    assert session.acs_status.fixed['protocol_version'] == '2.00'
    assert session.institution_id == 'BRANCH'


def test_adopted_institution_id_is_used_by_later_requests():
    transport = FakeTransport([
        echo(acs_status_body('BRANCH')),
        echo(patron_information_body()),
    ])
    session = Session(transport, institution_id='CONFIGURED')
    session.send_status()
    session.request(build_patron_information('P1', timestamp=TIMESTAMP))

    assert b'AOBRANCH|AAP1|' in transport.writes[1]


def test_adoption_can_be_disabled():
    transport = FakeTransport([echo(acs_status_body('BRANCH'))])
    session = Session(transport, institution_id='CONFIGURED', adopt_institution_id=False)
    session.send_status()
    assert session.institution_id == 'CONFIGURED'


def test_validation_failure_resends_identical_line():
    transport = FakeTransport([
        corrupted(patron_information_body()),
        echo(patron_information_body()),
    ])
    session = Session(transport)

    result = session.request(build_patron_information('P1', timestamp=TIMESTAMP))

    assert result.ok
    assert result.attempts == 2
    assert transport.writes[0] == transport.writes[1]
    assert session.sequence == 0


def test_retry_exhaustion_after_exactly_three_writes():
    transport = FakeTransport([corrupted(patron_information_body()) for _ in range(5)])
    session = Session(transport)

    result = session.request(build_patron_information('P1', timestamp=TIMESTAMP))

    assert not result.ok
    assert result.response is None
    assert result.error_code == ErrorCode.REQUEST_FAILED
    assert result.attempts == 3
    assert len(transport.writes) == 3
    assert result.failure.outcome == Outcome.VALIDATION_FAILED
    assert result.failure.error_code == ErrorCode.CHECKSUM_MISMATCH


def test_max_attempts_is_configurable():
    transport = FakeTransport([corrupted(patron_information_body()) for _ in range(5)])
    session = Session(transport, max_attempts=5)
    assert session.request(build_patron_information('P1', timestamp=TIMESTAMP)).attempts == 5
    assert len(transport.writes) == 5


def test_resend_request_uses_an_attempt():
    transport = FakeTransport([reply('96'), echo(patron_information_body())])
    session = Session(transport)

    result = session.request(build_patron_information('P1', timestamp=TIMESTAMP))

    assert result.ok
    assert result.attempts == 2


def test_unknown_message_type_is_retried():
    transport = FakeTransport(['12XYZ\r', echo(patron_information_body())])
    session = Session(transport)
    assert session.request(build_patron_information('P1', timestamp=TIMESTAMP)).attempts == 2


def test_write_failure_aborts_without_retry():
    transport = FakeTransport([echo(patron_information_body())], fail_write=True)
    session = Session(transport)

    result = session.request(build_patron_information('P1', timestamp=TIMESTAMP))

    assert not result.ok
    assert result.error_code == ErrorCode.TRANSPORT_FAILED
    assert result.attempts == 1


def test_read_failure_aborts_without_retry():
    transport = FakeTransport([])
    session = Session(transport)

    result = session.request(build_patron_information('P1', timestamp=TIMESTAMP))

    assert result.error_code == ErrorCode.TRANSPORT_FAILED
    assert len(transport.writes) == 1


def test_end_of_stream_without_terminator_is_decoded():
    transport = FakeTransport(['941', ''])
    session = Session(transport, sequencing=False)
    result = session.request(build_sc_status())
    assert result.ok
    assert result.response.fixed['ok'] == '1'


def test_crlf_from_server_is_tolerated():
    transport = FakeTransport([reply('941') + '\n', reply('940')])
    session = Session(transport, sequencing=False)
    assert session.login('u', 'p') is True
    assert session.login('u', 'p') is False


def test_login_accepted():
    transport = FakeTransport([echo('941')])
    session = Session(transport)
    assert session.login('user', 'pass', 'desk') is True
    assert transport.writes[0].startswith(b'9300CNuser|COpass|CPdesk|AY0AZ')


def test_login_refused_is_not_an_error():
    transport = FakeTransport([echo('940')])
    session = Session(transport)
    assert session.login('user', 'wrong') is False


def test_login_transport_failure():
    session = Session(FakeTransport([]))
    assert session.login('user', 'pass') is False


def test_default_terminal_password_is_sent():
    transport = FakeTransport([echo(patron_information_body())])
    session = Session(transport, terminal_password='secret')
    session.request(build_patron_information('P1', timestamp=TIMESTAMP))
    assert b'AO|AAP1|ACsecret|' in transport.writes[0]


def test_reset_rewinds_sequence():
    transport = FakeTransport([echo(acs_status_body()), echo(acs_status_body())])
    session = Session(transport)
    session.send_status()
    session.reset()
    session.send_status()
    assert transport.writes[0] == transport.writes[1]
    assert session.acs_status is not None


def test_invalid_arguments():
    with pytest.raises(ValueError):
        Session(FakeTransport(), field_terminator='||')
    with pytest.raises(ValueError):
        Session(FakeTransport(), max_attempts=0)


def test_end_to_end_patron_information():
    transport = FakeTransport([echo(patron_information_body())])
    session = Session(transport)

    result = session.request(build_patron_information('21234000012345'))

    sent = transport.writes[0].decode()
    assert sent.startswith('63000')
    assert sent[23:33] == ' ' * 10
    assert 'AA21234000012345|' in sent
    assert 'AD' not in sent.split('AY')[0]
    assert result.ok
    assert result.response['BL'] == ['Y']


def test_sequence_tag_ignored_when_sequencing_is_off():
    transport = FakeTransport([reply(acs_status_body(), 0)])
    session = Session(transport, sequencing=False)

    result = session.send_status()

    assert result.ok
    assert result.attempts == 1
    assert 'AY' not in result.response.fields
    assert result.response.first('BX') == 'YYYYYYYYYYYYYYYY'


def test_non_ascii_reply_checksum_is_over_wire_bytes():
    body = patron_information_body().replace('AEJane Doe|', 'AEJosé Núñez|')
    raw = (body + 'AY0').encode('utf-8') + b'AZ'
    line = raw + f"{-sum(raw) & 0xFFFF:04X}\r".encode('ascii')
    transport = FakeTransport([line])
    session = Session(transport)

    result = session.request(build_patron_information('P1', timestamp=TIMESTAMP))

    assert result.ok
    assert result.attempts == 1
    assert result.response.first('AE').encode('latin-1') == 'José Núñez'.encode('utf-8')


def test_non_ascii_request_checksum_is_over_wire_bytes(transport):
    session = Session(transport)
    data = session.encode(build_patron_information('Zoë', timestamp=TIMESTAMP))

    assert b'AAZo\xeb|' in data
    assert data[-5:-1] == f"{-sum(data[:-5]) & 0xFFFF:04X}".encode('ascii')


def test_reused_message_picks_up_adopted_institution_id():
    transport = FakeTransport([
        echo(patron_information_body()),
        echo(acs_status_body('BRANCH')),
        echo(patron_information_body()),
    ])
    session = Session(transport, institution_id='CONFIGURED')
    message = build_patron_information('P1', timestamp=TIMESTAMP)

    assert session.request(message).ok
    assert 'AO' not in message.fields
    assert session.send_status().ok
    assert session.request(message).ok

    assert b'AOCONFIGURED|AAP1|' in transport.writes[0]
    assert b'AOBRANCH|AAP1|' in transport.writes[2]
