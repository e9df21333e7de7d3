from datetime import datetime

import pytest

from sip2client.protocol_builder import (
    Message,
    MessageType,
    CODE,
    NUMERIC,
    TEXT,
    TIMESTAMP,
    format_fixed,
    sip_timestamp,
    build_summary,
    build_sc_status,
    build_login,
    build_patron_status,
    build_patron_information,
    build_fee_paid,
)

from conftest import TIMESTAMP as TS


def test_timestamp_has_four_spaces():
    stamp = sip_timestamp(datetime(2026, 10, 19, 8, 5, 3))
    assert stamp == '20261019    080503'
    assert len(stamp) == 18


def test_timestamp_defaults_to_now():
    stamp = sip_timestamp()
    assert len(stamp) == 18
    assert stamp[8:12] == '    '


def test_format_fixed_numeric_is_zero_padded():
    assert format_fixed(1, 3, NUMERIC) == '001'
    assert format_fixed('80', 3, NUMERIC) == '080'
    with pytest.raises(ValueError):
        format_fixed('1234', 3, NUMERIC)
    with pytest.raises(ValueError):
        format_fixed('US', 2, NUMERIC)


def test_format_fixed_text_is_padded_and_truncated():
    assert format_fixed('US', 3, TEXT) == 'US '
    assert format_fixed('USDX', 3, TEXT) == 'USD'
    assert format_fixed(None, 2, TEXT) == '  '


def test_format_fixed_code_pads_ints_and_keeps_text():
    assert format_fixed(1, 2, CODE) == '01'
    assert format_fixed('9', 2, CODE) == '9 '
    assert format_fixed('ENG', 3, CODE) == 'ENG'
    assert format_fixed('ABCD', 2, CODE) == 'AB'


def test_builders_accept_text_codes():
    message = build_patron_status('P1', language='ENG', timestamp=TS)
    assert message.encode().startswith('23ENG' + TS)
    message = build_fee_paid('A', 'CC', 'USD', 1, 'P1', timestamp=TS)
    assert message.encode().startswith('37' + TS + 'A CCUSD')


def test_format_fixed_timestamp_must_be_exact():
    assert format_fixed(TS, 18, TIMESTAMP) == TS
    with pytest.raises(ValueError):
        format_fixed('20261019 101500', 18, TIMESTAMP)


def test_summary_positions():
    assert build_summary() == ' ' * 10
    assert build_summary('Hold') == 'Y' + ' ' * 9
    assert build_summary('Fee') == ' ' * 6 + 'Y' + ' ' * 3
    assert build_summary('Bogus') == ' ' * 10


def test_sc_status():
    assert build_sc_status().encode() == '9900802.00'


def test_login():
    message = build_login('LoginUserID', 'LoginPassword', 'LocationCode')
    assert message.encode() == '9300CNLoginUserID|COLoginPassword|CPLocationCode|'


def test_login_without_location_omits_optional_field():
    assert build_login('user', 'pass').encode() == '9300CNuser|COpass|'


def test_patron_status_emits_required_empty_fields():
    message = build_patron_status('P1', timestamp=TS)
    assert message.encode() == '23000' + TS + 'AO|AAP1|AC|AD|'


def test_patron_status_full():
    message = build_patron_status('P1', '1234', 'tp', 'inst', language='001', timestamp=TS)
    assert message.encode() == '23001' + TS + 'AOinst|AAP1|ACtp|AD1234|'


def test_patron_information_defaults():
    message = build_patron_information('21234000012345', timestamp=TS)
    assert message.encode() == '63000' + TS + ' ' * 10 + 'AO|AA21234000012345|'


def test_patron_information_range_and_pin():
    message = build_patron_information('P1', '0000', summary=build_summary('Charged'),
                                       start_item=1, end_item=5, timestamp=TS)
    assert message.encode() == ('63000' + TS + '  Y       '
                                + 'AO|AAP1|AD0000|BP1|BQ5|')


def test_fee_paid():
    message = build_fee_paid('01', 0, 'USD', 2.5, 'P1', timestamp=TS)
    assert message.encode() == '37' + TS + '0100USD' + 'BV2.50|AO|AAP1|'


def test_fee_paid_optional_fields_in_order():
    message = build_fee_paid(1, 2, 'EUR', '10', 'P1', patron_password='9',
                             fee_id='F7', transaction_id='T9',
                             terminal_password='tp', institution_id='inst', timestamp=TS)
    assert message.encode() == ('37' + TS + '0102EUR'
                                + 'BV10.00|AOinst|AAP1|ACtp|AD9|CGF7|BKT9|')


def test_custom_field_terminator():
    assert build_login('u', 'p').encode('^') == '9300CNu^COp^'


def test_apply_defaults_fills_only_missing_layout_codes():
    message = build_patron_information('P1', timestamp=TS)
    message.apply_defaults({'AO': 'MAIN', 'AC': 'secret', 'CN': 'ignored'})
    assert message.encode() == '63000' + TS + ' ' * 10 + 'AOMAIN|AAP1|ACsecret|'

    login = build_login('u', 'p')
    login.apply_defaults({'AO': 'MAIN'})
    assert 'AO' not in login.fields


def test_apply_defaults_keeps_explicit_values():
    message = build_patron_status('P1', institution_id='OTHER', timestamp=TS)
    message.apply_defaults({'AO': 'MAIN'})
    assert message.fields.get('AO') == ['OTHER']


def test_message_is_plain_data():
    message = Message(MessageType.SC_STATUS, {'status_code': 1, 'max_print_width': 40,
                                              'protocol_version': '2.00'})
    assert message.encode() == '9910402.00'
