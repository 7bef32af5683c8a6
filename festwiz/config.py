import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from festwiz.times import DAY_START_HOUR, LAYOUT_DEFAULT_MINUTES, NOW_NEXT_DEFAULT_MINUTES

_DEFAULT_CONFIG_PATH = Path("config.toml")
_DEFAULT_ENV_PATH = Path("secrets")

_ENV_SETTINGS = {
    "FESTWIZ_DATA_URL": ("data", "base_url"),
    "FESTWIZ_DB_PATH": ("database", "path"),
}

_DATA_FILES = {
    "artists": "artists.json",
    "unofficial_artists": "unofficial_artists.json",
    "shows": "shows.json",
    "unofficial_shows": "unofficial_shows.json",
    "venues": "venues.json",
}


def load(path: Path = _DEFAULT_CONFIG_PATH, env_path: Path = _DEFAULT_ENV_PATH) -> dict[str, Any]:
    """Load config from TOML (empty if the file is missing), then overlay FESTWIZ_* settings."""
    cfg: dict[str, Any] = {}
    if path.exists():
        with open(path, "rb") as f:
            cfg = tomllib.load(f)
    _load_env(env_path, cfg)
    return cfg


def _read_env_file(env_path: Path) -> dict[str, str]:
    """KEY=value lines of a .env-style file; blank lines and comments are skipped."""
    if not env_path.exists():
        return {}
    values = {}
    for line in env_path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.strip().partition("=")
        if sep and not key.startswith("#"):
            values[key.strip()] = value.strip().strip("\"'")
    return values


def _load_env(env_path: Path, cfg: dict) -> None:
    # shell variables win over the env file
    values = {**_read_env_file(env_path), **os.environ}
    for name, (section, key) in _ENV_SETTINGS.items():
        if values.get(name):
            cfg.setdefault(section, {})[key] = values[name]


def get_site(cfg: dict) -> dict:
    return cfg.get("site", {})


def get_database_path(cfg: dict) -> Path:
    return Path(cfg.get("database", {}).get("path", "data/festwiz.db"))


def get_festival(cfg: dict) -> dict:
    festival = cfg.get("festival", {})
    return {
        "first_day": _iso_day(festival.get("first_day")),
        "last_day": _iso_day(festival.get("last_day")),
        "day_start_hour": int(festival.get("day_start_hour", DAY_START_HOUR)),
        "pm_cutoff_hour": int(festival.get("pm_cutoff_hour", 9)),
    }


def _iso_day(value) -> Optional[str]:
    # TOML parses bare dates into datetime.date
    return str(value) if value else None


def get_durations(cfg: dict) -> dict:
    durations = cfg.get("durations", {})
    return {
        "layout_minutes": int(durations.get("layout_minutes", LAYOUT_DEFAULT_MINUTES)),
        "now_next_minutes": int(durations.get("now_next_minutes", NOW_NEXT_DEFAULT_MINUTES)),
    }


def get_now_next(cfg: dict) -> dict:
    now_next = cfg.get("now_next", {})
    return {
        "lookahead_minutes": int(now_next.get("lookahead_minutes", 120)),
        "imminent_minutes": int(now_next.get("imminent_minutes", 45)),
        "refresh_seconds": float(now_next.get("refresh_seconds", 60)),
    }


def get_data_sources(cfg: dict) -> dict[str, str]:
    """
    Return source name -> location (URL or file path).

    [data].base_url wins over [data].dir; individual file names can be
    overridden under [data.files].
    """
    data = cfg.get("data", {})
    files = {**_DATA_FILES, **data.get("files", {})}
    base_url = data.get("base_url", "").rstrip("/")
    if base_url:
        return {name: f"{base_url}/{filename}" for name, filename in files.items()}
    data_dir = Path(data.get("dir", "data"))
    return {name: str(data_dir / filename) for name, filename in files.items()}


def get_venue_config(cfg: dict) -> dict:
    venues = cfg.get("venues", {})
    return {
        "clusters": [list(c) for c in venues.get("clusters", [])],
        "aliases": dict(venues.get("aliases", {})),
    }
