import os
from pathlib import Path
from typing import Dict, Optional

CONFIG_DIR = Path.home() / ".fdpkg"
CONFIG_FILE = CONFIG_DIR / "config"
LEDGER_FILE = CONFIG_DIR / "installed.json"
COOKIE_FILE = CONFIG_DIR / "cookies.txt"

DEFAULT_REGISTRY_URL = "https://fdrepo.natesworks.com"
DEFAULT_INSTALL_DIR = CONFIG_DIR / "packages"

REGISTRY_URL_KEY = "FDPKG_REGISTRY_URL"
INSTALL_DIR_KEY = "FDPKG_INSTALL_DIR"

KNOWN_KEYS = (REGISTRY_URL_KEY, INSTALL_DIR_KEY)


def read_config() -> Dict[str, str]:
    """read KEY=value pairs from the config file."""
    config = {}
    if not CONFIG_FILE.exists():
        return config

    try:
        with open(CONFIG_FILE, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                config[key.strip()] = value.strip()
    except (IOError, PermissionError, OSError):
        # if we can't read the file, treat as not configured
        return {}
    return config


def get_value(key: str) -> Optional[str]:
    """look a setting up in the environment first, then in the config file."""
    value = os.environ.get(key)
    if value:
        return value
    return read_config().get(key)


def set_value(key: str, value: str):
    """set a value in the config file, preserving other config values."""
    if key not in KNOWN_KEYS:
        raise ValueError(f"Unknown config key '{key}'")

    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    config = read_config()
    config[key] = value

    try:
        with open(CONFIG_FILE, "w") as f:
            for k, v in config.items():
                f.write(f"{k}={v}\n")
    except (IOError, PermissionError, OSError) as e:
        raise RuntimeError(f"failed to write config file: {e}") from e


def get_registry_url() -> str:
    return (get_value(REGISTRY_URL_KEY) or DEFAULT_REGISTRY_URL).rstrip("/")


def get_install_dir() -> Path:
    value = get_value(INSTALL_DIR_KEY)
    return Path(value).expanduser() if value else DEFAULT_INSTALL_DIR
