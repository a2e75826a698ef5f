"""Runtime settings loaded from YAML or environment variables."""

import os
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

try:
    import yaml
except ModuleNotFoundError as e:
    raise ModuleNotFoundError(
        "PyYAML is required for settings loading. Run: poetry install"
    ) from e
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "PITCH_TRACKER_"


class Settings(BaseModel):
    """Store backend, resolver retry policy and dashboard defaults."""

    backend: str = Field(default="sqlite", description="sqlite | rest")
    db_path: Path = Path("pitch_tracker.db")
    api_url: Optional[str] = Field(default=None, description="Supabase/PostgREST project URL")
    api_key: Optional[str] = None

    retry_attempts: int = Field(default=5, ge=1)
    retry_delay: float = Field(default=0.3, ge=0, description="Seconds between primary-shape attempts")

    series_buckets: int = Field(default=6, ge=1)
    period: str = Field(default="monthly", description="daily | weekly | monthly")
    timezone_name: str = Field(default="UTC", description="Zone used to cut calendar-day buckets")

    log_level: str = "INFO"

    @field_validator("backend")
    @classmethod
    def _known_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("sqlite", "rest"):
            raise ValueError(f"Unknown backend: {v}")
        return v

    @field_validator("period")
    @classmethod
    def _known_period(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("daily", "weekly", "monthly"):
            raise ValueError(f"Unknown period: {v}")
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone_name)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from YAML. Supports nested (store/resolver/dashboard) or flat structure."""
        data = yaml.safe_load(Path(path).read_text()) or {}
        store = data.get("store", {})
        resolver = data.get("resolver", {})
        dashboard = data.get("dashboard", {})

        def _get(key: str, nested: dict, top: dict, default=None):
            return nested.get(key, top.get(key, default))

        flat: dict = {}
        for key in ("backend", "db_path", "api_url", "api_key"):
            flat[key] = _get(key, store, data)
        flat["retry_attempts"] = _get("retry_attempts", resolver, data)
        flat["retry_delay"] = _get("retry_delay", resolver, data)
        flat["series_buckets"] = _get("series_buckets", dashboard, data)
        flat["period"] = _get("period", dashboard, data)
        flat["timezone_name"] = _get("timezone", dashboard, data) or _get("timezone_name", dashboard, data)
        flat["log_level"] = data.get("log_level")
        return cls.model_validate({k: v for k, v in flat.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[dict[str, str]] = None) -> "Settings":
        """
        Load from PITCH_TRACKER_* variables. SUPABASE_URL / SUPABASE_KEY are
        accepted for the REST endpoint when the prefixed names are unset.
        """
        env = os.environ if environ is None else environ
        flat: dict = {}
        for field_name in cls.model_fields:
            value = env.get(ENV_PREFIX + field_name.upper())
            if value is not None and value.strip():
                flat[field_name] = value.strip()
        flat.setdefault("api_url", env.get("SUPABASE_URL") or None)
        flat.setdefault("api_key", env.get("SUPABASE_KEY") or None)
        return cls.model_validate({k: v for k, v in flat.items() if v is not None})

    @classmethod
    def load(cls, path: Optional[str | Path] = None) -> "Settings":
        """YAML file when given, otherwise environment."""
        if path is not None:
            return cls.from_yaml(path)
        return cls.from_env()
