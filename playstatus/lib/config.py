"""
Shared configuration loader for the Play Status service.

The repo's config/default.json is always read first; the first deployment
file found is then layered over it section by section, so a deployed file
only needs the keys it changes.  Deployment search order:
  1. $PLAYSTATUS_CONFIG            (explicit path, e.g. from the unit file)
  2. /etc/playstatus/config.json   (deployed install)
  3. config.json                   (CWD, handy for local dev)

Secrets (PLAY_APPLICATION_KEY, MQTT_USER, MQTT_PASSWORD) stay in
environment variables, loaded by systemd EnvironmentFile.

Usage:
    from playstatus.lib.config import cfg

    port    = cfg("status", "port", default=8780)
    broker  = cfg("transport", "mqtt_broker", default="localhost")
    notify  = cfg("notification")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_DEFAULTS_PATH = os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json")

_SEARCH_PATHS = [
    "/etc/playstatus/config.json",
    "config.json",
]


def _candidate_paths() -> list[str]:
    explicit = os.environ.get("PLAYSTATUS_CONFIG")
    return ([explicit] if explicit else []) + list(_SEARCH_PATHS)


def _read(path: str) -> dict | None:
    """Parse one JSON object file; None when missing, unreadable or not an object."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.error("Config %s: top level must be an object", path)
        return None
    return data


def _overlay(base: dict, override: dict) -> dict:
    """Merge *override* over *base*, one level deep (per section)."""
    merged = dict(base)
    for section, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(section), dict):
            merged[section] = {**merged[section], **value}
        else:
            merged[section] = value
    return merged


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    transport = config.get("transport") or {}
    if not transport.get("mqtt_broker"):
        logger.warning("Config %s: missing transport.mqtt_broker, using localhost", path)
    notification = config.get("notification") or {}
    for key in ("ticker", "content"):
        template = notification.get(key)
        if template is not None and ("{0}" not in template or "{1}" not in template):
            logger.warning("Config %s: notification.%s should use both {0} and {1}", path, key)


def load_config() -> dict:
    """Load defaults plus the first deployment file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    config = _read(_DEFAULTS_PATH) or {}
    source = "defaults"
    for path in _candidate_paths():
        override = _read(path)
        if override is None:
            continue
        config = _overlay(config, override)
        source = path
        logger.info("Config loaded from %s", path)
        break
    else:
        logger.warning("No config.json found, using defaults only")

    _validate(config, source)
    _config = config
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("status")                       → config["status"]
    cfg("transport", "mqtt_broker")     → config["transport"]["mqtt_broker"]
    cfg("status", "port", default=8780) → config["status"]["port"] or 8780
    """
    val = load_config().get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
