#-*- coding: utf-8 -*-
"""
Message building module

Message structure:
┌──────────┬───────────────┬─────────────────────┬─────────┬───────────┬────────┐
│ Type tag │ Fixed fields  │ Variable fields     │ Seq tag │ Checksum  │ Term   │
│ 2 digits │ exact widths  │ code+value+'|' ...  │ AY + 1  │ AZ + 4hex │ \r     │
└──────────┴───────────────┴─────────────────────┴─────────┴───────────┴────────┘

- Type tag: 2 decimal digits
- Fixed fields: numeric zero-padded, text space-padded, 18-char timestamps
- Variable fields: 2-char code + value + field terminator, in the order of the type
- Seq tag / checksum: appended by utils.checksum, not by this module
- Terminator: a bare carriage return, never followed by a line feed
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Sequence, Tuple, Union
from loguru import logger

from .field_table import FieldTable, DEFAULT_FIELD_TERMINATOR


#Protocol constants
MESSAGE_TERMINATOR = '\r'
PROTOCOL_VERSION = '2.00'

#Language codes
LANGUAGE_UNKNOWN = '000'
LANGUAGE_ENGLISH = '001'

#Fixed field kinds
NUMERIC = 'numeric'      #zero-padded to width
TEXT = 'text'            #left-justified, space-padded, truncated
TIMESTAMP = 'timestamp'  #literal 18-char timestamp
CODE = 'code'            #integers zero-padded, other values as TEXT

TIMESTAMP_WIDTH = 18
TIMESTAMP_FORMAT = '%Y%m%d    %H%M%S'

#Summary categories of a patron information request, in positional order
SUMMARY_TYPES = (
    'Hold',
    'Overdue',
    'Charged',
    'Fine',
    'Recall',
    'UnavailableHolds',
    'Fee',
)
SUMMARY_WIDTH = 10


class MessageType:
    """Message type tags"""
    #Requests (SC -> ACS)
    PATRON_STATUS = '23'         #patron status request
    FEE_PAID = '37'              #fee paid
    PATRON_INFORMATION = '63'    #patron information
    LOGIN = '93'                 #login
    SC_STATUS = '99'             #SC status

    #Responses (ACS -> SC)
    PATRON_STATUS_RESPONSE = '24'
    FEE_PAID_RESPONSE = '38'
    PATRON_INFORMATION_RESPONSE = '64'
    LOGIN_RESPONSE = '94'
    REQUEST_SC_RESEND = '96'
    ACS_STATUS = '98'


class FieldCode:
    """Variable field codes"""
    PATRON_IDENTIFIER = 'AA'
    PATRON_PASSWORD = 'AD'
    INSTITUTION_ID = 'AO'
    TERMINAL_PASSWORD = 'AC'
    START_ITEM = 'BP'
    END_ITEM = 'BQ'
    FEE_AMOUNT = 'BV'
    FEE_IDENTIFIER = 'CG'
    TRANSACTION_ID = 'BK'
    LOGIN_USER_ID = 'CN'
    LOGIN_PASSWORD = 'CO'
    LOCATION_CODE = 'CP'
    VALID_PATRON = 'BL'
    VALID_PATRON_PASSWORD = 'CQ'
    SEQUENCE_NUMBER = 'AY'
    CHECKSUM = 'AZ'


@dataclass(frozen=True)
class FixedField:
    """A fixed-width slot"""
    name: str
    width: int
    kind: str = TEXT


@dataclass(frozen=True)
class VariableField:
    """A variable field position in a message layout"""
    code: str
    required: bool = False


#Request layouts: tag -> (fixed slots, variable field order)
REQUEST_LAYOUTS: Dict[str, Tuple[Tuple[FixedField, ...], Tuple[VariableField, ...]]] = {
    MessageType.PATRON_STATUS: (
        (FixedField('language', 3, CODE),
         FixedField('transaction_date', TIMESTAMP_WIDTH, TIMESTAMP)),
        (VariableField(FieldCode.INSTITUTION_ID, True),
         VariableField(FieldCode.PATRON_IDENTIFIER, True),
         VariableField(FieldCode.TERMINAL_PASSWORD, True),
         VariableField(FieldCode.PATRON_PASSWORD, True)),
    ),
    MessageType.FEE_PAID: (
        (FixedField('transaction_date', TIMESTAMP_WIDTH, TIMESTAMP),
         FixedField('fee_type', 2, CODE),
         FixedField('payment_type', 2, CODE),
         FixedField('currency_type', 3, TEXT)),
        (VariableField(FieldCode.FEE_AMOUNT, True),
         VariableField(FieldCode.INSTITUTION_ID, True),
         VariableField(FieldCode.PATRON_IDENTIFIER, True),
         VariableField(FieldCode.TERMINAL_PASSWORD),
         VariableField(FieldCode.PATRON_PASSWORD),
         VariableField(FieldCode.FEE_IDENTIFIER),
         VariableField(FieldCode.TRANSACTION_ID)),
    ),
    MessageType.PATRON_INFORMATION: (
        (FixedField('language', 3, CODE),
         FixedField('transaction_date', TIMESTAMP_WIDTH, TIMESTAMP),
         FixedField('summary', SUMMARY_WIDTH, TEXT)),
        (VariableField(FieldCode.INSTITUTION_ID, True),
         VariableField(FieldCode.PATRON_IDENTIFIER, True),
         VariableField(FieldCode.TERMINAL_PASSWORD),
         VariableField(FieldCode.PATRON_PASSWORD),
         VariableField(FieldCode.START_ITEM),
         VariableField(FieldCode.END_ITEM)),
    ),
    MessageType.LOGIN: (
        (FixedField('uid_algorithm', 1, NUMERIC),
         FixedField('pwd_algorithm', 1, NUMERIC)),
        (VariableField(FieldCode.LOGIN_USER_ID, True),
         VariableField(FieldCode.LOGIN_PASSWORD, True),
         VariableField(FieldCode.LOCATION_CODE)),
    ),
    MessageType.SC_STATUS: (
        (FixedField('status_code', 1, NUMERIC),
         FixedField('max_print_width', 3, NUMERIC),
         FixedField('protocol_version', 4, TEXT)),
        (),
    ),
}


def sip_timestamp(when: Optional[Union[datetime, float]] = None) -> str:
    """
    Build an 18-character protocol timestamp

    Args:
        when: datetime or epoch seconds, now when omitted

    Returns:
        "YYYYMMDD    HHMMSS"
    """
    if when is None:
        return time.strftime(TIMESTAMP_FORMAT)
    if isinstance(when, datetime):
        return when.strftime(TIMESTAMP_FORMAT)
    return time.strftime(TIMESTAMP_FORMAT, time.localtime(when))


def format_fixed(value, width: int, kind: str = TEXT) -> str:
    """
    Format a value into a fixed-width slot

    Args:
        value: slot value
        width: exact width in characters
        kind: NUMERIC, TEXT, CODE or TIMESTAMP

    Returns:
        str: text of exactly `width` characters
    """
    if kind == NUMERIC:
        text = str(value).strip()
        if not text.isdigit():
            raise ValueError(f"Numeric fixed field expects digits: {value!r}")
        text = text.zfill(width)
        if len(text) != width:
            raise ValueError(f"Numeric fixed field {value!r} wider than {width}")
        return text

    if kind == TIMESTAMP:
        text = sip_timestamp(value) if value is None or not isinstance(value, str) else value
        if len(text) != TIMESTAMP_WIDTH:
            raise ValueError(f"Timestamp must be {TIMESTAMP_WIDTH} characters: {text!r}")
        return text

    if kind == CODE and isinstance(value, int) and not isinstance(value, bool):
        return format_fixed(value, width, NUMERIC)

    text = '' if value is None else str(value)
    return text.ljust(width)[:width]


def build_summary(summary_type: Optional[str] = None) -> str:
    """
    Build the 10-character summary field of a patron information request

    Args:
        summary_type: one of SUMMARY_TYPES; anything else requests no summary

    Returns:
        str: spaces with a 'Y' at the position of the category
    """
    summary = [' '] * SUMMARY_WIDTH
    if summary_type in SUMMARY_TYPES:
        summary[SUMMARY_TYPES.index(summary_type)] = 'Y'
    return ''.join(summary)


@dataclass
class Message:
    """An outgoing message before integrity suffixes"""
    tag: str
    fixed: Dict[str, object]
    fields: FieldTable = field(default_factory=FieldTable)

    @property
    def fixed_layout(self) -> Tuple[FixedField, ...]:
        return REQUEST_LAYOUTS[self.tag][0]

    @property
    def variable_layout(self) -> Tuple[VariableField, ...]:
        return REQUEST_LAYOUTS[self.tag][1]

    def apply_defaults(self, defaults: Dict[str, Optional[str]]) -> None:
        """
        Fill codes of this message's layout that have no value yet

        Args:
            defaults: code -> value, None values are skipped
        """
        for var in self.variable_layout:
            value = defaults.get(var.code)
            if value is not None and var.code not in self.fields:
                self.fields.add(var.code, value)

    def encode(self, terminator: str = DEFAULT_FIELD_TERMINATOR) -> str:
        """
        Encode the message body

        Args:
            terminator: variable field terminator

        Returns:
            str: type tag + fixed fields + variable fields
        """
        parts = [self.tag]
        for slot in self.fixed_layout:
            parts.append(format_fixed(self.fixed.get(slot.name), slot.width, slot.kind))

        for var in self.variable_layout:
            values = self.fields.get(var.code)
            if not values:
                if var.required:
                    parts.append(var.code + terminator)
                continue
            for value in values:
                parts.append(var.code + value + terminator)

        body = ''.join(parts)
        logger.debug(f"Built message: tag={self.tag}, body={body!r}")
        return body


def _staged_fields(pairs: Sequence[Tuple[str, object]]) -> FieldTable:
    """Stage variable values, skipping absent ones"""
    table = FieldTable()
    for code, value in pairs:
        table.add(code, value)
    return table


#Message builders
def build_sc_status() -> Message:
    """Build an SC status message (online, 80 columns, protocol 2.00)"""
    return Message(MessageType.SC_STATUS, {
        'status_code': 0,
        'max_print_width': 80,
        'protocol_version': PROTOCOL_VERSION,
    })


def build_login(username: str, password: str, location: Optional[str] = None) -> Message:
    """
    Build a login message

    Only plaintext user id and password algorithms are supported.

    Args:
        username: login user id
        password: login password
        location: location code (optional)

    Returns:
        Message
    """
    return Message(
        MessageType.LOGIN,
        {'uid_algorithm': 0, 'pwd_algorithm': 0},
        _staged_fields([
            (FieldCode.LOGIN_USER_ID, username),
            (FieldCode.LOGIN_PASSWORD, password),
            (FieldCode.LOCATION_CODE, location or None),
        ]),
    )


def build_patron_status(patron_id: str,
                        patron_password: Optional[str] = None,
                        terminal_password: Optional[str] = None,
                        institution_id: Optional[str] = None,
                        language: str = LANGUAGE_UNKNOWN,
                        timestamp: Optional[str] = None) -> Message:
    """
    Build a patron status request

    Args:
        patron_id: patron identifier (barcode)
        patron_password: patron PIN
        terminal_password: terminal password
        institution_id: institution id
        language: 3-character language code
        timestamp: transaction date, now when omitted

    Returns:
        Message
    """
    return Message(
        MessageType.PATRON_STATUS,
        {'language': language, 'transaction_date': timestamp},
        _staged_fields([
            (FieldCode.INSTITUTION_ID, institution_id),
            (FieldCode.PATRON_IDENTIFIER, patron_id),
            (FieldCode.TERMINAL_PASSWORD, terminal_password),
            (FieldCode.PATRON_PASSWORD, patron_password),
        ]),
    )


def build_patron_information(patron_id: str,
                             patron_password: Optional[str] = None,
                             summary: Optional[str] = None,
                             start_item: Optional[int] = None,
                             end_item: Optional[int] = None,
                             terminal_password: Optional[str] = None,
                             institution_id: Optional[str] = None,
                             language: str = LANGUAGE_UNKNOWN,
                             timestamp: Optional[str] = None) -> Message:
    """
    Build a patron information request

    Args:
        patron_id: patron identifier (barcode)
        patron_password: patron PIN
        summary: 10-character summary field, see build_summary()
        start_item: first item of the requested range
        end_item: last item of the requested range
        terminal_password: terminal password
        institution_id: institution id
        language: 3-character language code
        timestamp: transaction date, now when omitted

    Returns:
        Message
    """
    return Message(
        MessageType.PATRON_INFORMATION,
        {
            'language': language,
            'transaction_date': timestamp,
            'summary': summary if summary is not None else build_summary(),
        },
        _staged_fields([
            (FieldCode.INSTITUTION_ID, institution_id),
            (FieldCode.PATRON_IDENTIFIER, patron_id),
            (FieldCode.TERMINAL_PASSWORD, terminal_password),
            (FieldCode.PATRON_PASSWORD, patron_password),
            (FieldCode.START_ITEM, start_item),
            (FieldCode.END_ITEM, end_item),
        ]),
    )


def build_fee_paid(fee_type,
                   payment_type,
                   currency: str,
                   fee_amount,
                   patron_id: str,
                   patron_password: Optional[str] = None,
                   fee_id: Optional[str] = None,
                   transaction_id: Optional[str] = None,
                   terminal_password: Optional[str] = None,
                   institution_id: Optional[str] = None,
                   timestamp: Optional[str] = None) -> Message:
    """
    Build a fee paid message

    Args:
        fee_type: fee type code, an int is zero-padded (1 -> "01")
        payment_type: payment type code, padded like fee_type
        currency: 3-letter currency code
        fee_amount: amount paid, sent with two decimals
        patron_id: patron identifier (barcode)
        patron_password: patron PIN
        fee_id: fee identifier
        transaction_id: transaction id
        terminal_password: terminal password
        institution_id: institution id
        timestamp: transaction date, now when omitted

    Returns:
        Message
    """
    return Message(
        MessageType.FEE_PAID,
        {
            'transaction_date': timestamp,
            'fee_type': fee_type,
            'payment_type': payment_type,
            'currency_type': currency,
        },
        _staged_fields([
            (FieldCode.FEE_AMOUNT, f"{float(fee_amount):.2f}"),
            (FieldCode.INSTITUTION_ID, institution_id),
            (FieldCode.PATRON_IDENTIFIER, patron_id),
            (FieldCode.TERMINAL_PASSWORD, terminal_password),
            (FieldCode.PATRON_PASSWORD, patron_password),
            (FieldCode.FEE_IDENTIFIER, fee_id),
            (FieldCode.TRANSACTION_ID, transaction_id),
        ]),
    )
