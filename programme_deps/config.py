"""
Configuration loading and validation.

Engine configuration lives in a YAML file; a few deployment knobs (config
path, database URL, log level) can also come from ``PD_*`` environment
variables.
"""

from __future__ import annotations

from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .policy import DependencyPolicy
from .workdays import CalendarDays, LagCalendar, WorkingCalendar


class StoreConfig(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./data/dependencies.db"
    echo: bool = False


class CalendarConfig(BaseModel):
    enabled: bool = False
    working_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    holidays: List[date] = Field(default_factory=list)

    @field_validator("working_days")
    @classmethod
    def _iso_weekdays(cls, value: List[int]) -> List[int]:
        if not value:
            raise ValueError("working_days must not be empty")
        if any(d < 1 or d > 7 for d in value):
            raise ValueError("working_days uses ISO weekdays 1 (Mon) to 7 (Sun)")
        return value


class LoggingConfig(BaseModel):
    level: str = "info"
    format: Literal["json", "text"] = "json"


class EngineConfig(BaseModel):
    store: StoreConfig = Field(default_factory=StoreConfig)
    policy: DependencyPolicy = Field(default_factory=DependencyPolicy)
    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def build_calendar(self) -> LagCalendar:
        if not self.calendar.enabled:
            return CalendarDays()
        return WorkingCalendar(self.calendar.working_days, self.calendar.holidays)


def load_config(path: str | Path) -> EngineConfig:
    """Load and validate engine configuration from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return EngineConfig.model_validate(raw)


class Settings(BaseSettings):
    """Environment overrides."""

    model_config = SettingsConfigDict(env_prefix="PD_", env_file=".env", extra="ignore")

    config_path: Optional[str] = None
    database_url: Optional[str] = None
    log_level: Optional[str] = None
    log_format: Optional[Literal["json", "text"]] = None

    def resolve(self) -> EngineConfig:
        """Load the YAML config (if any) and apply environment overrides."""
        config = load_config(self.config_path) if self.config_path else EngineConfig()
        if self.database_url:
            config.store.database_url = self.database_url
        if self.log_level:
            config.logging.level = self.log_level
        if self.log_format:
            config.logging.format = self.log_format
        return config


@lru_cache
def get_settings() -> Settings:
    return Settings()
