"""Configuration management for ledgersort.

Reads configuration from ~/.config/ledgersort.toml and creates default config if needed.
"""

import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
import tomllib
import tomli_w


@dataclass
class Config:
    """Application configuration."""

    base_dir: Path
    db_data_dir: Path
    db_filename: str
    log_level: str
    log_dir: Path
    llm_provider: Optional[str] = "openai"
    llm_openai_api_key: str = ""
    llm_openai_model: Optional[str] = None
    llm_openai_timeout_seconds: float = 60.0
    llm_openai_max_retries: int = 2
    llm_completion_window: str = "24h"
    batch_size: int = 100
    poll_page_size: int = 100
    submit_interval_seconds: float = 10.0
    poll_interval_seconds: float = 30.0
    orphan_timeout_minutes: int = 60
    release_failed_transactions: bool = False

    @property
    def db_path(self) -> Path:
        """Get the full database path (data_dir/filename)."""
        return self.db_data_dir / self.db_filename

    @property
    def openai_api_key(self) -> str:
        """API key from the config file, falling back to OPENAI_API_KEY."""
        return self.llm_openai_api_key or os.environ.get("OPENAI_API_KEY", "")

    @classmethod
    def default(cls) -> "Config":
        """Create a Config with default values."""
        home = Path.home()
        base_dir = home / "data" / "ledgersort"
        return cls(
            base_dir=base_dir,
            db_data_dir=base_dir / "db",
            db_filename="ledgersort.db",
            log_level="INFO",
            log_dir=base_dir / "logs",
        )


def get_config_path() -> Path:
    """Get the path to the config file."""
    return Path.home() / ".config" / "ledgersort.toml"


def get_migrations_dir() -> Path:
    """Get the path to the migrations directory.

    This is always relative to the code location, not configurable.
    """
    return Path(__file__).parent / "db" / "migrations"


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file, creating default if it doesn't exist.

    Args:
        config_path: Optional explicit path. Defaults to ~/.config/ledgersort.toml.

    Returns:
        Config object with loaded or default values.
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        config = Config.default()
        _write_config(config, config_path)
        return config

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    return _config_from_dict(data)


def _config_from_dict(data: dict) -> Config:
    """Build a Config from parsed TOML, using defaults for missing values."""
    defaults = Config.default()
    base_dir = Path(data.get("base_dir", defaults.base_dir)).expanduser()

    db_config = data.get("database", {})
    db_data_dir = Path(db_config.get("data_dir", base_dir / "db")).expanduser()
    db_filename = db_config.get("filename", defaults.db_filename)

    log_config = data.get("logging", {})
    log_level = log_config.get("level", defaults.log_level)
    log_dir = Path(log_config.get("log_dir", base_dir / "logs")).expanduser()

    llm_config = data.get("llm", {})
    cat_config = data.get("categorization", {})

    return Config(
        base_dir=base_dir,
        db_data_dir=db_data_dir,
        db_filename=db_filename,
        log_level=log_level,
        log_dir=log_dir,
        llm_provider=llm_config.get("provider", defaults.llm_provider),
        llm_openai_api_key=llm_config.get("openai_api_key", ""),
        llm_openai_model=llm_config.get("openai_model") or None,
        llm_openai_timeout_seconds=float(
            llm_config.get("openai_timeout_seconds", defaults.llm_openai_timeout_seconds)
        ),
        llm_openai_max_retries=int(
            llm_config.get("openai_max_retries", defaults.llm_openai_max_retries)
        ),
        llm_completion_window=llm_config.get(
            "completion_window", defaults.llm_completion_window
        ),
        batch_size=int(cat_config.get("batch_size", defaults.batch_size)),
        poll_page_size=int(cat_config.get("poll_page_size", defaults.poll_page_size)),
        submit_interval_seconds=float(
            cat_config.get("submit_interval_seconds", defaults.submit_interval_seconds)
        ),
        poll_interval_seconds=float(
            cat_config.get("poll_interval_seconds", defaults.poll_interval_seconds)
        ),
        orphan_timeout_minutes=int(
            cat_config.get("orphan_timeout_minutes", defaults.orphan_timeout_minutes)
        ),
        release_failed_transactions=_get_bool(
            cat_config, "release_failed_transactions", defaults.release_failed_transactions
        ),
    )


def _get_bool(section: dict, key: str, default: bool) -> bool:
    """Read a TOML boolean, rejecting strings and numbers."""
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be true or false, got {value!r}")
    return value


def _write_config(config: Config, config_path: Path) -> None:
    """Write config to the config file.

    Args:
        config: Config object to write.
        config_path: Destination file.
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    # The API key is left empty; OPENAI_API_KEY is read at runtime instead
    data = {
        "base_dir": str(config.base_dir),
        "database": {
            "data_dir": str(config.db_data_dir),
            "filename": config.db_filename,
        },
        "logging": {
            "level": config.log_level,
            "log_dir": str(config.log_dir),
        },
        "llm": {
            "provider": config.llm_provider or "",
            "openai_api_key": "",
            "openai_model": config.llm_openai_model or "",
            "openai_timeout_seconds": config.llm_openai_timeout_seconds,
            "openai_max_retries": config.llm_openai_max_retries,
            "completion_window": config.llm_completion_window,
        },
        "categorization": {
            "batch_size": config.batch_size,
            "poll_page_size": config.poll_page_size,
            "submit_interval_seconds": config.submit_interval_seconds,
            "poll_interval_seconds": config.poll_interval_seconds,
            "orphan_timeout_minutes": config.orphan_timeout_minutes,
            "release_failed_transactions": config.release_failed_transactions,
        },
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
