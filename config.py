"""
SCRIPTORIUM - Configuration

Centralized configuration management for the entire system.
Uses environment variables with sensible defaults.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from core.errors import ConfigError

# Load environment variables from .env file
load_dotenv()


class LogLevel(Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    json_format: bool = field(default_factory=lambda: os.getenv("LOG_JSON", "false").lower() == "true")
    log_file: Optional[Path] = field(
        default_factory=lambda: Path(os.environ["LOG_FILE"]) if os.getenv("LOG_FILE") else None
    )
    include_caller: bool = field(default_factory=lambda: os.getenv("LOG_INCLUDE_CALLER", "false").lower() == "true")
    service_name: str = field(default_factory=lambda: os.getenv("SERVICE_NAME", "scriptorium"))
    service_version: str = field(default_factory=lambda: os.getenv("SERVICE_VERSION", "1.0.0"))

    def __post_init__(self):
        if self.level.upper() not in LogLevel.__members__:
            raise ConfigError(
                f"invalid log level: {self.level!r}",
                config_key="LOG_LEVEL",
                actual_value=self.level,
            )


@dataclass
class IRConfig:
    """Intermediate representation settings."""
    schema_version: str = field(default_factory=lambda: os.getenv("IR_SCHEMA_VERSION", "1.0.0"))
    # Loss class assumed when an IR snapshot does not declare one
    default_loss_class: str = field(default_factory=lambda: os.getenv("IR_DEFAULT_LOSS_CLASS", "L0"))
    raw_markup_attribute: str = field(default_factory=lambda: os.getenv("IR_RAW_MARKUP_ATTRIBUTE", "raw_markup"))

    def __post_init__(self):
        if self.default_loss_class not in ("L0", "L1", "L2", "L3", "L4"):
            raise ConfigError(
                f"invalid default loss class: {self.default_loss_class!r}",
                config_key="IR_DEFAULT_LOSS_CLASS",
                actual_value=self.default_loss_class,
            )


@dataclass
class SelfCheckConfig:
    """Self-check executor settings."""
    temp_dir_prefix: str = field(default_factory=lambda: os.getenv("SELFCHECK_TEMP_PREFIX", "selfcheck-"))
    transcript_file: str = field(default_factory=lambda: os.getenv("SELFCHECK_TRANSCRIPT_FILE", "transcript.jsonl"))
    report_version: str = field(default_factory=lambda: os.getenv("SELFCHECK_REPORT_VERSION", "1.0.0"))


@dataclass
class Config:
    """Main configuration class combining all sub-configs."""
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    ir: IRConfig = field(default_factory=IRConfig)
    selfcheck: SelfCheckConfig = field(default_factory=SelfCheckConfig)


# Singleton configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create configuration singleton."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration from environment."""
    global _config
    load_dotenv(override=True)
    _config = Config()
    return _config
