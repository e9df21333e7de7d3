from loguru import logger

from sip2client.utils.errors import (
    ErrorCode, get_error_description, get_error_category, is_success, DecodeError, Sip2Error,
)
from sip2client.utils.logger import setup_logger


def test_descriptions():
    assert get_error_description(ErrorCode.CHECKSUM_MISMATCH) == "Checksum mismatch"
    assert get_error_description(0x0999) == "Unknown error code: 0x0999"


def test_categories():
    assert get_error_category(ErrorCode.TRANSPORT_FAILED) == "Transport error"
    assert get_error_category(ErrorCode.SEQUENCE_MISMATCH) == "Validation error"
    assert get_error_category(ErrorCode.UNKNOWN_MESSAGE_TYPE) == "Decode error"
    assert get_error_category(ErrorCode.LOGIN_REFUSED) == "Protocol refusal"
    assert get_error_category(ErrorCode.REQUEST_FAILED) == "Request error"
    assert get_error_category(0x7700) == "Unknown category"


def test_is_success():
    assert is_success(ErrorCode.SUCCESS)
    assert not is_success(ErrorCode.REQUEST_FAILED)


def test_decode_error_carries_code():
    error = DecodeError("bad")
    assert isinstance(error, Sip2Error)
    assert error.code == ErrorCode.DECODE_FAILED


def test_setup_logger_writes_files(tmp_path):
    setup_logger(log_dir=str(tmp_path), log_level="DEBUG", app_name="test")
    try:
        logger.error("boom")
        logger.complete()
        names = sorted(p.name for p in tmp_path.iterdir())
        assert any(name.startswith("test_error_") for name in names)
        assert any(name.startswith("test_2") for name in names)
    finally:
        logger.remove()
        logger.add(lambda _: None)
