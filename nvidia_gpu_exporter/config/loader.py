"""
Configuration loader with file reading and validation.
"""

from pathlib import Path

from .lexer import LexerError
from .parser import Block, ConfigDocument, ParseError, parse_config, parse_config_file
from .schema import AddressParseError, Config


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


class ConfigLoader:
    """
    Loads and validates configuration from files or strings.

    Usage:
        loader = ConfigLoader()
        config = loader.load_file("/etc/nvidia-gpu-exporter/config.conf")
        # or
        config = loader.load_string(config_text)
    """

    # Known directives for each block type
    KNOWN_DIRECTIVES = {
        "web": {"listen", "telemetry_path"},
        "nvml": {"timeout"},
        "logging": {
            "level",
            "file",
            "file_level",
            "file_max_size",
            "file_keep",
            "colors",
            "format",
        },
    }

    LOG_LEVELS = {"debug", "info", "warning", "warn", "error", "critical"}

    def __init__(self):
        self.last_document: ConfigDocument | None = None

    def load_file(self, path: str | Path) -> Config:
        """
        Load configuration from a file.

        Args:
            path: Path to the configuration file

        Returns:
            Config object

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        path = Path(path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        if not path.is_file():
            raise ConfigError(f"Not a file: {path}")

        try:
            document = parse_config_file(path)
        except (LexerError, ParseError) as e:
            raise ConfigError(f"Failed to parse configuration: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration: {e}") from e

        return self._build(document)

    def load_string(self, source: str, filename: str = "<string>") -> Config:
        """
        Load configuration from a string.

        Raises:
            ConfigError: If configuration cannot be parsed
        """
        try:
            document = parse_config(source, filename)
        except (LexerError, ParseError) as e:
            raise ConfigError(f"Failed to parse configuration: {e}") from e

        return self._build(document)

    def _build(self, document: ConfigDocument) -> Config:
        self.last_document = document
        try:
            return Config.from_document(document)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

    def validate(self, config: Config) -> list[str]:
        """
        Validate configuration and return list of warnings.

        Args:
            config: Configuration to validate

        Returns:
            List of warning messages (empty if no issues)
        """
        warnings = []

        if self.last_document:
            warnings.extend(self._check_unknown_directives(self.last_document))

        try:
            config.web.address()
        except AddressParseError as e:
            warnings.append(str(e))

        path = config.web.telemetry_path
        if not path.startswith("/"):
            warnings.append(f"Telemetry path '{path}' must start with '/'")
        elif path == "/":
            warnings.append("Telemetry path '/' hides the landing page")

        for level in (config.logging.level, config.logging.file_level):
            if level.lower() not in self.LOG_LEVELS:
                warnings.append(f"Unknown log level '{level}'")

        return warnings

    def _check_unknown_directives(self, document: ConfigDocument) -> list[str]:
        """Check for unknown blocks and directives in parsed document."""
        warnings = []

        def check_block(block: Block) -> None:
            known = self.KNOWN_DIRECTIVES.get(block.type)
            if known is None:
                warnings.append(f"Unknown block '{block.type}' (line {block.line})")
                return

            for directive in block.directives:
                if directive.name not in known:
                    warnings.append(
                        f"Unknown directive '{directive.name}' in {block.type} block "
                        f"(line {directive.line})"
                    )

            for nested in block.blocks:
                warnings.append(
                    f"Unexpected nested block '{nested.type}' in {block.type} block "
                    f"(line {nested.line})"
                )

        for block in document.blocks:
            check_block(block)

        for directive in document.directives:
            warnings.append(
                f"Unknown top-level directive '{directive.name}' (line {directive.line})"
            )

        return warnings
