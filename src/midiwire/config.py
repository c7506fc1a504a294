"""
midiwire Configuration Module
=============================
Handles YAML configuration for the MIDI input transport, logging and
connection retries.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Union

import yaml

from .production.error_handler import ErrorSeverity, ProductionErrorHandler

log = logging.getLogger(__name__)


class ConfigValidationError(ValueError):
    """Configuration file content is not usable"""
    pass


# Default configuration as YAML template
DEFAULT_CONFIG_YAML = """# midiwire Configuration
# ======================
# Place in ~/.config/midiwire/config.yaml

# MIDI input transport
transport:
  port_name: null          # null = auto-detect
  auto_detect: true        # Match port names against port_keywords
  port_keywords:
    - keyboard
    - piano
    - synth
    - midi
  ignore_sysex: true       # Drop SysEx messages at the port
  ignore_timing: true      # Drop timing clock messages at the port
  ignore_active_sense: true

# Logging
logging:
  verbose: false           # DEBUG output, including system-command diagnostics
  log_file: null           # Rotating log file path
  colors: true

# Connection retries
retry:
  max_attempts: 3
  base_delay: 0.3          # Seconds, doubled per attempt
  max_delay: 2.0
"""


@dataclass
class TransportConfig:
    port_name: Optional[str] = None
    auto_detect: bool = True
    port_keywords: List[str] = field(
        default_factory=lambda: ['keyboard', 'piano', 'synth', 'midi'])
    ignore_sysex: bool = True
    ignore_timing: bool = True
    ignore_active_sense: bool = True


@dataclass
class LoggingConfig:
    verbose: bool = False
    log_file: Optional[str] = None
    colors: bool = True


@dataclass
class RetrySettings:
    max_attempts: int = 3
    base_delay: float = 0.3
    max_delay: float = 2.0


@dataclass
class FullConfig:
    transport: TransportConfig = field(default_factory=TransportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    retry: RetrySettings = field(default_factory=RetrySettings)


def get_config_path() -> Path:
    """Get the configuration file path"""
    xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
    return Path(xdg_config) / 'midiwire' / 'config.yaml'


def create_default_config(path: Optional[Union[str, Path]] = None, force: bool = False) -> Path:
    """Write the default configuration file unless one exists"""
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if config_path.exists() and not force:
        log.info(f"Config already exists: {config_path}")
    else:
        config_path.write_text(DEFAULT_CONFIG_YAML)
        log.info(f"Created default config: {config_path}")

    return config_path


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigValidationError(f"'{name}' must be a mapping, got {type(section).__name__}")
    return section


def _get(section: Dict[str, Any], key: str, default: Any) -> Any:
    """Value for key; missing keys and explicit nulls take the default"""
    value = section.get(key)
    return default if value is None else value


def _report(error: Exception, config_path: Path,
            error_handler: Optional[ProductionErrorHandler]):
    if error_handler is not None:
        error_handler.handle_error(error, 'config_load', ErrorSeverity.MEDIUM,
                                   {'path': str(config_path)})
    else:
        log.warning(f"Failed to load config {config_path}: {error}")


def load_config(path: Optional[Union[str, Path]] = None,
                error_handler: Optional[ProductionErrorHandler] = None) -> FullConfig:
    """
    Load configuration from YAML file

    Missing files, missing sections, missing keys and null values fall back
    to defaults. A file that cannot be read, parsed or validated is reported
    (to error_handler under 'config_load' when given, else as a warning) and
    yields the defaults.
    """
    config_path = Path(path) if path else get_config_path()

    if not config_path.exists():
        return FullConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        _report(e, config_path, error_handler)
        return FullConfig()

    if not data:
        return FullConfig()

    try:
        config = _parse(data)
    except (TypeError, ValueError) as e:
        _report(e, config_path, error_handler)
        return FullConfig()

    log.debug(f"Loaded config: {config_path}")
    return config


def _parse(data: Any) -> FullConfig:
    if not isinstance(data, dict):
        raise ConfigValidationError("top level must be a mapping")

    tp = _section(data, 'transport')
    lg = _section(data, 'logging')
    rt = _section(data, 'retry')

    transport = TransportConfig()
    keywords = _get(tp, 'port_keywords', transport.port_keywords)
    if not isinstance(keywords, list):
        raise ConfigValidationError("'transport.port_keywords' must be a list")

    port_name = tp.get('port_name')
    transport = TransportConfig(
        port_name=str(port_name) if port_name is not None else None,
        auto_detect=bool(_get(tp, 'auto_detect', transport.auto_detect)),
        port_keywords=[str(k) for k in keywords],
        ignore_sysex=bool(_get(tp, 'ignore_sysex', transport.ignore_sysex)),
        ignore_timing=bool(_get(tp, 'ignore_timing', transport.ignore_timing)),
        ignore_active_sense=bool(_get(tp, 'ignore_active_sense', transport.ignore_active_sense))
    )

    log_file = lg.get('log_file')
    logging_config = LoggingConfig(
        verbose=bool(_get(lg, 'verbose', False)),
        log_file=str(log_file) if log_file is not None else None,
        colors=bool(_get(lg, 'colors', True))
    )

    retry = RetrySettings(
        max_attempts=int(_get(rt, 'max_attempts', 3)),
        base_delay=float(_get(rt, 'base_delay', 0.3)),
        max_delay=float(_get(rt, 'max_delay', 2.0))
    )
    if retry.max_attempts < 1:
        raise ConfigValidationError(f"'retry.max_attempts' must be at least 1, got {retry.max_attempts}")
    if retry.base_delay < 0 or retry.max_delay < 0:
        raise ConfigValidationError("retry delays must not be negative")

    return FullConfig(transport=transport, logging=logging_config, retry=retry)


def save_config(config: FullConfig, path: Optional[Union[str, Path]] = None) -> Path:
    """Save configuration to YAML file"""
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w') as f:
        yaml.dump(asdict(config), f, default_flow_style=False, sort_keys=False)

    log.info(f"Saved config: {config_path}")
    return config_path
