import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import dotenv_values

from .logging import get_logger

log = get_logger("fabric-spec-config")

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_GENERATION = "structured"
DEFAULT_INVENTORY_BASE_URL = "https://api-fbqr.eland.co.kr"
DEFAULT_INVENTORY_TIMEOUT = 30


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir.

    This makes running tools from subdirectories (e.g., `src/`) still find
    the repository-level `.env`.
    """
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Read the nearest .env without mutating the process environment."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    try:
        values = dotenv_values(path)
    except OSError as e:
        log.warning(f"Failed reading .env: {e}")
        return {}
    env = {k: v.strip() for k, v in values.items() if k and v is not None}
    log.debug(f"Loaded {len(env)} key(s) from .env at {path}")
    return env


def _lookup(name: str, dotenv_dir: str, *aliases: str) -> Optional[str]:
    v = os.environ.get(name)
    if v and v.strip():
        return v.strip()
    env = _read_dotenv(dotenv_dir)
    for key in (name, *aliases):
        v = env.get(key)
        if v:
            return v
    return None


def load_openai(dotenv_dir: str) -> Optional[str]:
    """Return the OpenAI API key from env or .env (OPENAI_API_KEY or lowercase)."""
    return _lookup("OPENAI_API_KEY", dotenv_dir, "openai_api_key")


def load_openai_base_url(dotenv_dir: str) -> Optional[str]:
    return _lookup("OPENAI_BASE_URL", dotenv_dir)


def load_model(dotenv_dir: str) -> str:
    return _lookup("FABRIC_SPEC_MODEL", dotenv_dir) or DEFAULT_MODEL


def load_generation(dotenv_dir: str) -> str:
    return (_lookup("FABRIC_SPEC_GENERATION", dotenv_dir) or DEFAULT_GENERATION).lower()


def load_inventory(dotenv_dir: str) -> tuple[str, int]:
    """Return (inventory_base_url, timeout_seconds) with sensible defaults."""
    url = (_lookup("INVENTORY_BASE_URL", dotenv_dir) or DEFAULT_INVENTORY_BASE_URL).rstrip("/")
    raw_timeout = _lookup("INVENTORY_TIMEOUT", dotenv_dir)
    try:
        timeout = int(raw_timeout) if raw_timeout else DEFAULT_INVENTORY_TIMEOUT
    except ValueError:
        log.warning("INVENTORY_TIMEOUT=%r is not an integer; using %ss", raw_timeout, DEFAULT_INVENTORY_TIMEOUT)
        timeout = DEFAULT_INVENTORY_TIMEOUT
    return url, timeout


def load_db_path(dotenv_dir: str) -> Optional[str]:
    return _lookup("FABRIC_SPEC_DB_PATH", dotenv_dir)


@dataclass
class AppSettings:
    openai_api_key: Optional[str]
    openai_base_url: Optional[str]
    model: str
    generation: str
    inventory_base_url: str
    inventory_timeout: int
    db_path: Optional[str]


def load_settings(dotenv_dir: Optional[str] = None) -> AppSettings:
    """Collect all settings from env/.env, logging what was resolved."""
    base = dotenv_dir or os.getcwd()
    inventory_url, inventory_timeout = load_inventory(base)
    settings = AppSettings(
        openai_api_key=load_openai(base),
        openai_base_url=load_openai_base_url(base),
        model=load_model(base),
        generation=load_generation(base),
        inventory_base_url=inventory_url,
        inventory_timeout=inventory_timeout,
        db_path=load_db_path(base),
    )
    log.debug(
        "Settings: model=%s generation=%s inventory=%s api_key=%s",
        settings.model,
        settings.generation,
        settings.inventory_base_url,
        "set" if settings.openai_api_key else "missing",
    )
    return settings
