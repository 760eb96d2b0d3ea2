"""
Settings read from the environment.

Module-level constants hold the defaults; load_settings() resolves them
against an environment mapping (os.environ unless one is passed in).
"""
import os
from dataclasses import dataclass
from typing import Optional

# Local document store
METRICS_DIR = "data"
METRICS_KEY = "metrics.json"

# How long a served document may be cached downstream
METRICS_REVALIDATE_SECONDS = 300

REQUEST_TIMEOUT = 30
MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max upload

ALLOWED_EXTENSIONS = {'csv'}

FALSE_VALUES = {'0', 'false', 'no', 'n', 'off', ''}


def env_flag(value, default):
    if value is None:
        return default
    return value.strip().lower() not in FALSE_VALUES


def env_int(value, default):
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Expected an integer setting, got {value!r}") from None


@dataclass(frozen=True)
class Settings:
    data_source_url: Optional[str] = None
    metrics_dir: str = METRICS_DIR
    metrics_key: str = METRICS_KEY
    strict_validation: bool = True
    estimate_night: bool = False
    request_timeout: int = REQUEST_TIMEOUT
    revalidate_seconds: int = METRICS_REVALIDATE_SECONDS
    max_content_length: int = MAX_CONTENT_LENGTH

    @property
    def cache_control(self):
        return f"s-maxage={self.revalidate_seconds // 2}, stale-while-revalidate={self.revalidate_seconds}"


def load_settings(environ=None):
    """Build Settings from an environment mapping (os.environ by default)."""
    env = os.environ if environ is None else environ
    return Settings(
        data_source_url=env.get("DATA_SOURCE_URL") or None,
        metrics_dir=env.get("METRICS_DIR") or METRICS_DIR,
        metrics_key=env.get("METRICS_KEY") or METRICS_KEY,
        strict_validation=env_flag(env.get("STRICT_VALIDATION"), True),
        estimate_night=env_flag(env.get("ESTIMATE_NIGHT"), False),
        request_timeout=env_int(env.get("REQUEST_TIMEOUT"), REQUEST_TIMEOUT),
        revalidate_seconds=env_int(env.get("METRICS_REVALIDATE_SECONDS"), METRICS_REVALIDATE_SECONDS),
        max_content_length=env_int(env.get("MAX_CONTENT_LENGTH"), MAX_CONTENT_LENGTH),
    )
