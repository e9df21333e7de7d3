# -*- coding: utf-8 -*-
"""
SIP2 client - command line entry

Features:
- Initialise logging
- Load configuration
- Connect (login + status)
- Check whether a patron and PIN are valid
"""

import argparse
import sys
from typing import List, Optional

from loguru import logger

from .client import Sip2Client
from .config_manager import ConfigManager
from .protocol_builder import FieldCode
from .utils.errors import ConfigError, get_error_description
from .utils.logger import setup_logger


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SIP2 patron check")
    parser.add_argument("--config", default=None, help="configuration file (JSON)")
    parser.add_argument("--host", default=None, help="override sip.host")
    parser.add_argument("--port", type=int, default=None, help="override sip.port")
    parser.add_argument("--barcode", required=True, help="patron barcode")
    parser.add_argument("--pin", default=None, help="patron PIN")
    return parser.parse_args(argv)


def load_config(path: Optional[str]) -> ConfigManager:
    """
    Load and validate configuration

    Raises:
        ConfigError: configuration has errors
    """
    config = ConfigManager(path, save_missing=False)
    errors = config.validate_config()
    if errors:
        raise ConfigError("; ".join(errors))
    return config


def check_patron(client: Sip2Client, barcode: str, pin: Optional[str]) -> str:
    """
    Look up a patron and describe the result

    Returns:
        "Valid Patron and Pin!", "Bad PIN!" or "Bad Patron!"
    """
    result = client.patron_information(barcode, pin)
    if not result.ok or result.response.first(FieldCode.VALID_PATRON) != 'Y':
        return "Bad Patron!"
    if result.response.first(FieldCode.VALID_PATRON_PASSWORD) != 'Y':
        return "Bad PIN!"
    return "Valid Patron and Pin!"


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point"""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logger(
        log_dir=config.get("log.dir"),
        log_level=config.get("log.level"),
        rotation=config.get("log.rotation"),
        retention=config.get("log.retention"),
        console_level=config.get("log.console_level"),
    )

    host = args.host or config.sip_host
    port = args.port or config.sip_port

    client = Sip2Client.from_config(config)
    if not client.connect(host, port, config.sip_username or None, config.sip_password or None):
        logger.error(f"Could not connect to {host}:{port}: {get_error_description(client.last_error)}")
        return 1

    logger.info(f"Connected to {host}")
    try:
        outcome = check_patron(client, args.barcode, args.pin)
    finally:
        client.disconnect()

    print(outcome)
    return 0 if outcome == "Valid Patron and Pin!" else 1


if __name__ == '__main__':
    sys.exit(main())
