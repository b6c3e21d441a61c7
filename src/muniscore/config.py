from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml

from muniscore.exceptions import ConfigError

class AppSettings(BaseSettings):
    name: str = "Muniscore"
    version: str = "1.0.0"

class PathSettings(BaseSettings):
    db_path: Path = Path("./data/muniscore.db")

class LoggingSettings(BaseSettings):
    log_requests: bool = True
    level: str = "INFO"

class CalendarSettings(BaseSettings):
    """
    Reference calendar for month windows and stored timestamps.
    Aware datetimes are converted into this zone and stored naive.
    """
    timezone: str = "UTC"
    min_year: int = 2000
    max_year: int = 2100

class ScoringSettings(BaseSettings):
    # Composite weights (must sum to 1.0)
    weight_coverage: float = 0.40
    weight_punctuality: float = 0.30
    weight_quality: float = 0.20
    weight_quantity: float = 0.10

    # Quantity sub-score = min(avg deliveries per completed task * multiplier, cap)
    quantity_multiplier: float = 20.0
    quantity_cap: float = 100.0

class ApiSettings(BaseSettings):
    advance_on_read: bool = True  # run the lifecycle updater before read endpoints
    cors_origins: list[str] = ["*"]

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_nested_delimiter="__", env_file=".env", extra="ignore")
    app: AppSettings = AppSettings()
    paths: PathSettings = PathSettings()
    logging: LoggingSettings = LoggingSettings()
    calendar: CalendarSettings = CalendarSettings()
    scoring: ScoringSettings = ScoringSettings()
    api: ApiSettings = ApiSettings()

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        # Load from default path if exists
        default_path = Path("config/settings.yaml")
        path = config_path or (default_path if default_path.exists() else None)

        if not path:
            return cls()

        try:
            with open(path, "r") as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to load settings from {path}: {exc}") from exc

        return cls(**config_data)

settings = Settings.load()
