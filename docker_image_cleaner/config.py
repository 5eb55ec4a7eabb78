import json
import logging
import os
import re
from datetime import timedelta
from pathlib import Path

from .errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path("/etc/docker-image-cleaner")
CONFIG_FILE = CONFIG_DIR / "config.json"
CONFIG_ENV_VAR = "DOCKER_IMAGE_CLEANER_CONFIG"

DEFAULT_CONFIG = {
    "exclude": [],  # image:tag entries that are never deleted
    "safety_duration": "1h",  # don't delete any image created in the last DUR
    "delete_dangling": False,
    "delete_leaf": False,
    "daemon_sleep_interval_seconds": 86400,  # 24 hours
    "log_level": "INFO",
    "log_file": "/var/log/docker-image-cleaner.log",
    "backup_enabled": True,
    "backup_file": "/var/lib/docker-image-cleaner/backup.json",
    "docker_host": None,  # falls back to DOCKER_HOST / the local socket
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def config_path(path=None) -> Path:
    if path:
        return Path(path)
    return Path(os.environ.get(CONFIG_ENV_VAR) or CONFIG_FILE)


def load_config(path=None) -> dict:
    """Loads the configuration from the JSON file, filling in missing keys."""
    config_file = config_path(path)
    if not config_file.exists():
        save_config(DEFAULT_CONFIG, config_file)
        return dict(DEFAULT_CONFIG)
    try:
        with open(config_file, "r") as f:
            config = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Ignoring unreadable config file {config_file}: {e}")
        return dict(DEFAULT_CONFIG)
    if not isinstance(config, dict):
        logger.warning(f"Ignoring config file {config_file}: expected a JSON object")
        return dict(DEFAULT_CONFIG)
    for key, value in DEFAULT_CONFIG.items():
        config.setdefault(key, value)
    return config


def save_config(config: dict, path=None):
    """Saves the configuration to the JSON file."""
    config_file = config_path(path)
    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, "w") as f:
            json.dump(config, f, indent=4)
    except IOError as e:
        # Usually a permissions problem on /etc; the defaults still apply.
        logger.debug(f"Could not write config file {config_file}: {e}")


def parse_duration(value) -> timedelta:
    """Parse a Go style duration such as ``30m``, ``1h`` or ``1h30m``.

    Bare numbers are taken as seconds.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    text = str(value).strip()
    if not text:
        raise ConfigError("Empty duration")
    if re.fullmatch(r"\d+(\.\d+)?", text):
        return timedelta(seconds=float(text))
    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ConfigError(f"Invalid duration: {value!r} (expected e.g. 30m, 1h, 24h)")
    return timedelta(seconds=seconds)


def format_duration(delta: timedelta) -> str:
    """Format a timedelta as a Go style duration, e.g. ``1h5m0s``."""
    total = int(delta.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def parse_exclude(value) -> list:
    """Normalise the exclude setting; accepts a list or a comma separated string."""
    if not value:
        return []
    if isinstance(value, str):
        value = [value]
    exclude = []
    for entry in value:
        exclude.extend(part.strip() for part in str(entry).split(",") if part.strip())
    return exclude
