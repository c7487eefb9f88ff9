"""
Configuration schema with dataclasses for validation and type safety.

Defines all configuration sections, their fields and defaults.
"""

import ipaddress
from dataclasses import dataclass, field

from .parser import Block, ConfigDocument
from ..const import DEFAULT_LISTEN_ADDRESS, DEFAULT_TELEMETRY_PATH


class AddressParseError(ValueError):
    """Exception raised for a malformed listen address."""

    pass


def parse_listen_address(address: str) -> tuple[str, int]:
    """
    Split a listen address into host and port.

    Accepts "host:port", "1.2.3.4:port" and "[::1]:port".

    Raises:
        AddressParseError: If the address is malformed
    """
    host, sep, port_str = address.rpartition(":")
    if not sep or not host:
        raise AddressParseError(f"Invalid listen address {address!r}: expected host:port")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
        try:
            ipaddress.IPv6Address(host)
        except ValueError:
            raise AddressParseError(f"Invalid IPv6 address in {address!r}") from None
    elif ":" in host:
        raise AddressParseError(f"IPv6 address must be bracketed in {address!r}")

    try:
        port = int(port_str)
    except ValueError:
        raise AddressParseError(f"Invalid port in listen address {address!r}") from None

    if not 0 <= port <= 65535:
        raise AddressParseError(f"Port out of range in listen address {address!r}")

    return host, port


@dataclass
class WebConfig:
    """HTTP listener configuration."""
    listen: str = DEFAULT_LISTEN_ADDRESS
    telemetry_path: str = DEFAULT_TELEMETRY_PATH

    @classmethod
    def from_block(cls, block: Block | None) -> "WebConfig":
        """Create WebConfig from a parsed 'web' block."""
        if block is None:
            return cls()

        return cls(
            listen=str(block.get_value("listen", DEFAULT_LISTEN_ADDRESS)),
            telemetry_path=str(block.get_value("telemetry_path", DEFAULT_TELEMETRY_PATH)),
        )

    def address(self) -> tuple[str, int]:
        """Listen address as (host, port)."""
        return parse_listen_address(self.listen)


@dataclass
class NvmlConfig:
    """Hardware query settings."""
    timeout: float | None = None  # Seconds per scrape, None = unbounded

    def __post_init__(self) -> None:
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"NVML timeout must be positive, got {self.timeout}")

    @classmethod
    def from_block(cls, block: Block | None) -> "NvmlConfig":
        """Create NvmlConfig from a parsed 'nvml' block."""
        if block is None:
            return cls()

        timeout = block.get_value("timeout")
        if timeout is True:
            raise ValueError("NVML timeout expects a duration or 'off', got 'on'")
        if timeout is False:
            timeout = None
        return cls(timeout=float(timeout) if timeout is not None else None)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "warning"  # debug, info, warning, error
    file: str | None = None  # Log file path
    file_level: str = "debug"  # File log level
    file_max_size: int = 10  # Max file size in MB
    file_keep: int = 5  # Number of backup files to keep
    colors: bool = True  # Colored console output
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    @classmethod
    def from_block(cls, block: Block | None) -> "LoggingConfig":
        """Create LoggingConfig from a parsed 'logging' block."""
        if block is None:
            return cls()

        return cls(
            level=str(block.get_value("level", "warning")),
            file=block.get_value("file"),
            file_level=str(block.get_value("file_level", "debug")),
            file_max_size=int(block.get_value("file_max_size", 10)),
            file_keep=int(block.get_value("file_keep", 5)),
            colors=bool(block.get_value("colors", True)),
            format=block.get_value("format", "%(asctime)s [%(levelname)s] %(name)s: %(message)s"),
        )


@dataclass
class Config:
    """Complete application configuration."""
    web: WebConfig = field(default_factory=WebConfig)
    nvml: NvmlConfig = field(default_factory=NvmlConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_document(cls, doc: ConfigDocument) -> "Config":
        """Create Config from a parsed ConfigDocument."""
        return cls(
            web=WebConfig.from_block(doc.get_block("web")),
            nvml=NvmlConfig.from_block(doc.get_block("nvml")),
            logging=LoggingConfig.from_block(doc.get_block("logging")),
        )
