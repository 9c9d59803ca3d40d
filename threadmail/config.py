"""Configuration loading and validation."""

from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Optional

from threadmail.yaml_util import load_yaml, save_yaml

DEFAULT_CONFIG_FILENAME = "config.yaml"
DEFAULT_DB_FILENAME = "threadmail.db"
DEFAULT_USER_EMAIL = "user@example.com"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080

STARTER_CONFIG = """\
# threadmail configuration
database: threadmail.db

user:
  # Address used as the sender of every message you compose
  email: user@example.com

web:
  host: 127.0.0.1
  port: 8080
  page_size: 20
"""


def load_config(config_path: Optional[Path] = None, script_dir: Path = None) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Search order:
    1. Explicit --config path
    2. ./config.yaml (current working directory)
    3. Script directory config.yaml

    Args:
        config_path: Explicit path to config file
        script_dir: Script directory for fallback search

    Returns:
        Configuration dictionary (empty if no config found)
    """
    search_paths = []

    if config_path:
        search_paths.append(config_path)
    else:
        search_paths.append(Path.cwd() / DEFAULT_CONFIG_FILENAME)
        if script_dir:
            search_paths.append(script_dir / DEFAULT_CONFIG_FILENAME)

    for path in search_paths:
        if path.exists():
            config = load_yaml(path)
            print(f"Loaded config from: {path}")
            return config

    return {}


def write_starter_config(path: Path) -> None:
    """Write a commented starter config.yaml, round-tripped through ruamel."""
    data = load_yaml(StringIO(STARTER_CONFIG))
    save_yaml(data, path)


def get_db_path(config: Dict[str, Any], default: Path = None) -> Path:
    """Get the SQLite database path from config.

    ":memory:" is passed through unchanged.
    """
    value = config.get("database")
    if value:
        return Path(value) if value != ":memory:" else value
    return default or Path.cwd() / DEFAULT_DB_FILENAME


def get_user_email(config: Dict[str, Any]) -> str:
    return (config.get("user") or {}).get("email") or DEFAULT_USER_EMAIL


def get_web_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get web server settings with defaults filled in."""
    web = config.get("web") or {}
    return {
        "host": web.get("host", DEFAULT_HOST),
        "port": int(web.get("port", DEFAULT_PORT)),
        "page_size": int(web.get("page_size", 20)),
    }


def validate_config(config: Dict[str, Any]) -> List[str]:
    """Validate configuration and return list of errors.

    Args:
        config: Configuration dictionary

    Returns:
        List of error messages (empty if valid)
    """
    errors = []

    database = config.get("database")
    if database is not None and not isinstance(database, str):
        errors.append("'database' must be a path string")

    user = config.get("user")
    if user is not None:
        if not isinstance(user, dict):
            errors.append("'user' must be a mapping")
        elif "email" in user and "@" not in str(user["email"]):
            errors.append(f"user.email is not an email address: {user['email']}")

    web = config.get("web")
    if web is not None:
        if not isinstance(web, dict):
            errors.append("'web' must be a mapping")
        else:
            port = web.get("port")
            if port is not None and (not isinstance(port, int) or not 0 < port < 65536):
                errors.append(f"web.port must be an integer between 1 and 65535: {port}")
            page_size = web.get("page_size")
            if page_size is not None and (not isinstance(page_size, int) or not 1 <= page_size <= 100):
                errors.append(f"web.page_size must be between 1 and 100: {page_size}")

    return errors
