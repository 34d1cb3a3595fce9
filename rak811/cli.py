"""RAK811 driver command-line interface.

Command-line interface for exercising a RAK811 module: raw AT commands,
network join from configuration, uplinks and listening for downlinks.
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rak811.config import ConfigManager, ConfigEncryptionError, Config, JoinMode, LoRaWANConfig, LogLevel
from rak811.core import (
    CallbackEventHandler,
    ConfirmType,
    DeviceClass,
    Rak811Device,
    Rak811Error,
    ResponseStatus,
    SerialHandler,
)
from rak811.logging import CommunicationLogger

DEFAULT_LOG_DIR = Path.home() / ".rak811" / "logs"

_CONFIRM_TYPES = {
    "unconfirmed": ConfirmType.UNCONFIRMED,
    "confirmed": ConfirmType.CONFIRMED,
    "multicast": ConfirmType.MULTICAST,
    "proprietary": ConfirmType.PROPRIETARY,
}


def discover_ports() -> None:
    """Discover and display available serial ports."""
    print("Discovering serial ports...")
    ports = SerialHandler.discover_ports()

    if not ports:
        print("No serial ports found.")
        return

    print(f"\nFound {len(ports)} port(s):")
    for port in ports:
        print(f"  {port.device}")
        print(f"    Description: {port.description}")
        print(f"    Hardware ID: {port.hwid}")
        print()


def apply_lorawan_config(device: Rak811Device, lorawan: LoRaWANConfig) -> ResponseStatus:
    """Push the network settings from configuration to the module.

    Returns:
        First non-success status, or SUCCESS

    Raises:
        ValueError: Keys required by the join mode are missing or invalid
    """
    if lorawan.join_mode == JoinMode.OTAA:
        if not lorawan.app_eui or not lorawan.app_key:
            raise ValueError("OTAA requires lorawan.app_eui and lorawan.app_key")
    elif not (lorawan.dev_addr and lorawan.nwks_key and lorawan.apps_key):
        raise ValueError("ABP requires lorawan.dev_addr, lorawan.nwks_key and lorawan.apps_key")

    steps = [
        lambda: device.set_region(lorawan.region),
        lambda: device.set_class(DeviceClass(lorawan.device_class)),
        lambda: device.set_confirm(_CONFIRM_TYPES[lorawan.confirm]),
        device.adr_on if lorawan.adr else device.adr_off,
    ]
    if lorawan.join_mode == JoinMode.OTAA:
        steps.append(lambda: device.otaa_initialise(lorawan.app_eui, lorawan.app_key, lorawan.dev_eui))
    else:
        steps.append(lambda: device.abp_initialise(lorawan.dev_addr, lorawan.nwks_key, lorawan.apps_key))

    for step in steps:
        status = step()
        if status is not ResponseStatus.SUCCESS:
            return status
    return ResponseStatus.SUCCESS


def _print_event_handler() -> CallbackEventHandler:
    def on_join(success: bool) -> None:
        print(f"[event] join {'succeeded' if success else 'failed'}")

    def on_confirmation(rssi: int, snr: int) -> None:
        print(f"[event] uplink confirmed rssi={rssi} snr={snr}")

    def on_downlink(port: int, rssi: int, snr: int, payload: str) -> None:
        print(f"[event] downlink port={port} rssi={rssi} snr={snr} payload={payload}")

    return CallbackEventHandler(on_join=on_join, on_confirmation=on_confirmation,
                                on_downlink=on_downlink)


def run_session(args: argparse.Namespace,
                config: Config,
                logger: Optional[CommunicationLogger] = None,
                device: Optional[Rak811Device] = None) -> int:
    """Open a session and perform the requested actions in order:
    join, send, raw command, listen.

    Args:
        args: Parsed command-line arguments
        config: Loaded configuration
        logger: Optional CommunicationLogger
        device: Pre-built device (tests); built from config when None

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if device is None:
        device = Rak811Device.from_config(config, comm_logger=logger)

    ok = True
    try:
        if args.verbose:
            print(f"Opening {device.port}...")
        status = device.initialise()
        if status is not ResponseStatus.SUCCESS:
            print(f"Initialise failed: {status.value}", file=sys.stderr)
            return 1

        if args.listen:
            device.add_event_handler(_print_event_handler())

        if args.join:
            status = apply_lorawan_config(device, config.lorawan)
            if status is ResponseStatus.SUCCESS:
                if args.verbose:
                    print(f"Joining ({config.lorawan.join_mode.value})...")
                status = device.join(args.timeout)
            print(f"Join: {status.value}")
            if status is not ResponseStatus.SUCCESS:
                return 1

        if args.send:
            port = args.message_port or config.lorawan.message_port
            status = device.send_message(port, args.send, args.timeout)
            print(f"Send port {port}: {status.value}")
            ok = ok and status is ResponseStatus.SUCCESS

        if args.command:
            response = device.send_command(args.command, args.timeout)
            print(f"\n{'=' * 60}")
            print(f"Command: {response.command}")
            print(f"Status: {response.status.value}")
            print(f"Execution time: {response.execution_time:.3f}s")
            if response.raw_response:
                print(f"Response: {response.raw_response}")
            print(f"{'=' * 60}\n")
            ok = ok and response.is_successful()

        if args.listen:
            print(f"Listening for {args.listen:.0f}s (Ctrl+C to stop)...")
            time.sleep(args.listen)

        return 0 if ok else 1

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1
    except (Rak811Error, ValueError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1
    finally:
        device.close()
        if args.verbose:
            print("Port closed")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rak811",
        description="RAK811 LoRaWAN module driver",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --discover-ports
  %(prog)s --port /dev/ttyS0 --command "at+version"
  %(prog)s --port /dev/ttyS0 --join --send 48656C6C6F --message-port 5
  %(prog)s --port /dev/ttyS0 --join --listen 60 --verbose

  # Logging examples:
  %(prog)s --port /dev/ttyS0 --join --log
  %(prog)s --port /dev/ttyS0 --join --log --log-file ~/comm.log --log-level DEBUG
        """
    )

    parser.add_argument('--discover-ports', action='store_true',
                        help='Discover and list available serial ports')
    parser.add_argument('--port', type=str,
                        help='Serial port device (e.g., /dev/ttyS0, COM3); overrides serial.port')
    parser.add_argument('--baud', type=int,
                        help='Baud rate; overrides serial.baud_rate (default: 9600)')
    parser.add_argument('--command', type=str,
                        help='Raw AT command to execute (e.g., "at+version")')
    parser.add_argument('--join', action='store_true',
                        help='Apply the lorawan config section and join the network')
    parser.add_argument('--send', type=str, metavar='HEX',
                        help='Send an uplink with this hex payload')
    parser.add_argument('--message-port', type=int, metavar='N',
                        help='LoRaWAN port for --send (default: lorawan.message_port)')
    parser.add_argument('--timeout', type=float,
                        help='Timeout in seconds for --join, --send and --command')
    parser.add_argument('--listen', type=float, metavar='SECONDS',
                        help='Print device events for this many seconds before closing')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable verbose output')

    # Logging arguments
    parser.add_argument('--log', action='store_true',
                        help='Enable communication logging')
    parser.add_argument('--log-file', type=str, metavar='PATH',
                        help='Path to log file (default: ~/.rak811/logs/comm_YYYYMMDD_HHMMSS.log)')
    parser.add_argument('--log-level', type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], default='INFO',
                        help='Log level (default: INFO)')
    parser.add_argument('--log-to-console', action='store_true',
                        help='Output logs to console (stderr) in addition to file')

    # Configuration management arguments
    parser.add_argument('--config', type=str, metavar='PATH',
                        help='Configuration file (default: ./rak811.yaml or ~/.rak811/config.yaml)')
    parser.add_argument('--show-config', action='store_true',
                        help='Show current configuration with sources')
    parser.add_argument('--validate-config', action='store_true',
                        help='Validate configuration file')
    parser.add_argument('--generate-config', action='store_true',
                        help='Generate default configuration file (./rak811.yaml)')
    parser.add_argument('--encrypt-value', type=str, metavar='VALUE',
                        help='Encrypt a key for use in configuration')
    parser.add_argument('--config-schema', action='store_true',
                        help='Output JSON schema for configuration')

    return parser


def _create_logger(args: argparse.Namespace) -> CommunicationLogger:
    log_file_path = args.log_file
    if not log_file_path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file_path = str(DEFAULT_LOG_DIR / f"comm_{timestamp}.log")

    return CommunicationLogger(
        log_level=LogLevel[args.log_level],
        enable_file=True,
        enable_console=args.log_to_console,
        log_file_path=log_file_path
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    from rak811.config import config_cli

    if args.generate_config:
        return config_cli.generate_config_command()

    if args.encrypt_value:
        return config_cli.encrypt_value_command(args.encrypt_value)

    if args.config_schema:
        return config_cli.config_schema_command()

    if args.validate_config and args.config:
        return config_cli.validate_config_command(args.config)

    if args.discover_ports:
        discover_ports()
        return 0

    try:
        manager = ConfigManager.initialize(Path(args.config) if args.config else None)
    except (ValueError, ConfigEncryptionError) as e:
        print(f"Error: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    if args.show_config:
        return config_cli.show_config_command(mask_sensitive=True)

    if args.validate_config:
        return config_cli.validate_config_command()

    if not (args.command or args.join or args.send or args.listen):
        parser.print_help()
        return 0

    config = manager.get_config()
    serial_overrides = {}
    if args.port:
        serial_overrides['port'] = args.port
    if args.baud:
        serial_overrides['baud_rate'] = args.baud
    if serial_overrides:
        config = replace(config, serial=replace(config.serial, **serial_overrides))

    if not config.serial.port:
        print("Error: --port (or serial.port in config) is required", file=sys.stderr)
        return 1

    logger = None
    if args.log or config.logging.enabled:
        try:
            logger = _create_logger(args) if args.log else CommunicationLogger.from_config(
                config.logging,
                default_log_path=str(DEFAULT_LOG_DIR / "comm.log")
            )
        except (OSError, ValueError) as e:
            print(f"Warning: Failed to initialize logger: {e}", file=sys.stderr)

        if logger and args.verbose and logger.log_file_path:
            print(f"Logging enabled: {logger.log_file_path}")

    try:
        return run_session(args, config, logger)
    finally:
        if logger:
            logger.close()
