"""
Entry point for the NVIDIA GPU Exporter.

Usage:
    python -m nvidia_gpu_exporter
    python -m nvidia_gpu_exporter --web.listen-address 127.0.0.1:9445
    python -m nvidia_gpu_exporter -c /etc/nvidia-gpu-exporter/config.conf
    python -m nvidia_gpu_exporter --help
"""

import argparse
import asyncio
import sys

from . import __version__
from .app import BindError, run_app
from .config.loader import ConfigError, ConfigLoader
from .config.schema import AddressParseError, Config, NvmlConfig
from .logging import LogConfig, get_logger, setup_logging


logger = get_logger("main")


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="nvidia-gpu-exporter",
        description="Prometheus exporter for NVIDIA GPU metrics via NVML",
    )

    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        metavar="ADDRESS",
        help="Address to listen on for web interface and telemetry (default: 0.0.0.0:9445)",
    )

    parser.add_argument(
        "--web.telemetry-path",
        dest="telemetry_path",
        metavar="PATH",
        help="Path under which to expose metrics (default: /metrics)",
    )

    parser.add_argument(
        "--nvml.timeout",
        dest="nvml_timeout",
        type=float,
        metavar="SECONDS",
        help="Give up on a hardware query after this many seconds (default: no limit)",
    )

    parser.add_argument(
        "-c", "--config",
        metavar="PATH",
        help="Path to configuration file",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (INFO level)",
    )

    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Enable debug logging (DEBUG level)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (only errors)",
    )

    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Write logs to file",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration and exit",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def resolve_config(args: argparse.Namespace, loader: ConfigLoader) -> Config:
    """
    Load the config file (if any) and apply command-line overrides.

    Raises:
        ConfigError: If the config file cannot be loaded or an override is invalid
    """
    config = loader.load_file(args.config) if args.config else Config()

    if args.listen_address is not None:
        config.web.listen = args.listen_address
    if args.telemetry_path is not None:
        config.web.telemetry_path = args.telemetry_path
    if args.nvml_timeout is not None:
        try:
            config.nvml = NvmlConfig(timeout=args.nvml_timeout)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    return config


def build_log_config(args: argparse.Namespace, config: Config) -> LogConfig:
    """Merge logging settings: command-line flags win over the config file."""
    log_config = LogConfig(
        console_level=config.logging.level,
        console_colors=config.logging.colors,
        file_enabled=config.logging.file is not None,
        file_level=config.logging.file_level,
        file_max_bytes=config.logging.file_max_size * 1024 * 1024,
        file_backup_count=config.logging.file_keep,
        format=config.logging.format,
    )
    if config.logging.file:
        log_config.file_path = config.logging.file

    if args.debug:
        log_config.console_level = "debug"
    elif args.verbose:
        log_config.console_level = "info"
    elif args.quiet:
        log_config.console_level = "error"

    if args.no_color:
        log_config.console_colors = False

    if args.log_file:
        log_config.file_enabled = True
        log_config.file_path = args.log_file

    return log_config


def validate_config(config: Config, loader: ConfigLoader) -> int:
    """Print configuration warnings and a summary."""
    warnings = loader.validate(config)

    if warnings:
        print(f"Configuration warnings ({len(warnings)}):")
        for warning in warnings:
            print(f"  - {warning}")

    print("\nConfiguration summary:")
    print(f"  Listen address: {config.web.listen}")
    print(f"  Telemetry path: {config.web.telemetry_path}")
    print(f"  NVML timeout: {config.nvml.timeout if config.nvml.timeout else 'none'}")
    print(f"  Logging level: {config.logging.level}")
    if config.logging.file:
        print(f"  Log file: {config.logging.file}")

    print("\nConfiguration is valid!")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    loader = ConfigLoader()

    try:
        config = resolve_config(args, loader)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(build_log_config(args, config))

    if args.validate:
        return validate_config(config, loader)

    for warning in loader.validate(config):
        logger.warning(f"Config warning: {warning}")

    try:
        asyncio.run(run_app(config))
        return 0
    except AddressParseError as e:
        logger.error(f"Invalid listen address: {e}")
        return 1
    except BindError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
