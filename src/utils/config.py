import os
from dataclasses import dataclass

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean environment variable, falling back to default if unset or unrecognized."""
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return default


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings, read from the environment once at startup.

    Fields:
      - db_path: sqlite file used as the local store
      - strict_validation: validate every checkout field before placing an order
      - strict_status: only allow the next order status (or cancel)
      - debug: log at DEBUG level
    """

    db_path: str = "data/renteasy.sqlite"
    strict_validation: bool = True
    strict_status: bool = True
    debug: bool = False


def load_settings() -> Settings:
    return Settings(
        db_path=os.getenv("RENTEASY_DB_PATH", Settings.db_path),
        strict_validation=env_flag("RENTEASY_STRICT_VALIDATION", True),
        strict_status=env_flag("RENTEASY_STRICT_STATUS", True),
        debug=bool(os.getenv("DEBUG")),
    )
