"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Optional, Tuple

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

CONTINUITY_STRATEGIES = ("constant", "history")
URGENCY_STRATEGIES = ("constant", "authorization")
EFFICIENCY_STRATEGIES = ("constant", "proximity")


class ScoringWeights(BaseModel):
    """Weights of the combined slot score. Must sum to 1."""
    compatibility: float = 0.25
    availability: float = 0.20
    workload: float = 0.15
    travel: float = 0.15
    continuity: float = 0.10
    urgency: float = 0.10
    efficiency: float = 0.05

    @model_validator(mode="after")
    def validate_weights(self) -> "ScoringWeights":
        """Ensure weights are non-negative and sum to one."""
        values = self.model_dump()
        negative = [name for name, value in values.items() if value < 0]
        if negative:
            raise ValueError(f"Scoring weights must not be negative: {negative}")
        total = sum(values.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.4f}")
        return self


class GenerationConfig(BaseModel):
    """Horizon walk and hard-constraint settings of the candidate generator."""
    session_duration_minutes: int = 60
    day_start_hour: int = 8
    day_end_hour: int = 18
    step_minutes: int = 60
    exclude_days: List[int] = Field(default_factory=lambda: [6])  # Sunday
    min_score: float = 0.3
    max_results: int = 100
    max_daily_hours: float = 8
    min_break_minutes: int = 15
    enforce_service_radius: bool = True

    @field_validator("session_duration_minutes", "step_minutes", "max_results")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @field_validator("day_start_hour", "day_end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 24."""
        if not 0 <= v <= 24:
            raise ValueError(f"Hour must be between 0 and 24, got {v}")
        return v

    @field_validator("exclude_days")
    @classmethod
    def validate_exclude_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"exclude_days must be between 0 and 6, got {invalid_days}")
        return list(dict.fromkeys(value))

    @field_validator("min_score")
    @classmethod
    def validate_min_score(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError(f"min_score must be between 0 and 1, got {value}")
        return value

    @field_validator("max_daily_hours")
    @classmethod
    def validate_daily_hours(cls, value: float) -> float:
        if not 0 < value <= 24:
            raise ValueError(f"max_daily_hours must be in (0, 24], got {value}")
        return value

    @field_validator("min_break_minutes")
    @classmethod
    def validate_break(cls, value: int) -> int:
        if value < 0:
            raise ValueError("min_break_minutes must not be negative")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "GenerationConfig":
        """Ensure the daily walk opens before it closes."""
        if self.day_end_hour <= self.day_start_hour:
            raise ValueError("day_end_hour must be later than day_start_hour")
        return self


class TravelConfig(BaseModel):
    """Travel-time estimation settings."""
    rush_hour_speed_kmh: float = 25.0
    off_peak_speed_kmh: float = 35.0
    # Inclusive hour bounds: (7, 9) covers 07:00-09:59.
    rush_hours: List[Tuple[int, int]] = Field(default_factory=lambda: [(7, 9), (16, 18)])
    max_travel_minutes: float = 60.0
    service_area_radius_km: float = 25.0

    @field_validator("rush_hour_speed_kmh", "off_peak_speed_kmh", "max_travel_minutes", "service_area_radius_km")
    @classmethod
    def validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @field_validator("rush_hours")
    @classmethod
    def validate_rush_hours(cls, value: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
        for start, end in value:
            if not 0 <= start <= end <= 23:
                raise ValueError(f"Invalid rush hour window ({start}, {end})")
        return value


class AlternativesConfig(BaseModel):
    """Neighbourhood searched by the alternative-time suggester."""
    search_days: int = 2
    search_hours: int = 3
    step_minutes: int = 30
    max_results: int = 5

    @field_validator("search_days", "search_hours")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Search radius must not be negative")
        return value

    @field_validator("step_minutes", "max_results")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value


class RouteConfig(BaseModel):
    """Simulated annealing schedule for the route optimizer."""
    initial_temperature: float = 10000.0
    cooling_rate: float = 0.003
    min_temperature: float = 1.0
    seed: Optional[int] = None

    @field_validator("cooling_rate")
    @classmethod
    def validate_cooling_rate(cls, value: float) -> float:
        if not 0 < value < 1:
            raise ValueError(f"cooling_rate must be between 0 and 1, got {value}")
        return value

    @model_validator(mode="after")
    def validate_temperatures(self) -> "RouteConfig":
        if self.min_temperature <= 0:
            raise ValueError("min_temperature must be greater than zero")
        if self.initial_temperature < self.min_temperature:
            raise ValueError("initial_temperature must not be below min_temperature")
        return self


class CacheConfig(BaseModel):
    """Bounds of the per-call score cache."""
    max_entries: int = 50_000
    ttl_seconds: float = 300.0

    @field_validator("max_entries", "ttl_seconds")
    @classmethod
    def validate_positive(cls, value):
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value


class StrategyConfig(BaseModel):
    """Which scorer to plug in for the continuity, urgency and efficiency factors."""
    continuity: str = "constant"
    urgency: str = "constant"
    efficiency: str = "constant"
    constant_value: float = 0.5

    @field_validator("continuity")
    @classmethod
    def validate_continuity(cls, value: str) -> str:
        return _validate_choice("continuity", value, CONTINUITY_STRATEGIES)

    @field_validator("urgency")
    @classmethod
    def validate_urgency(cls, value: str) -> str:
        return _validate_choice("urgency", value, URGENCY_STRATEGIES)

    @field_validator("efficiency")
    @classmethod
    def validate_efficiency(cls, value: str) -> str:
        return _validate_choice("efficiency", value, EFFICIENCY_STRATEGIES)

    @field_validator("constant_value")
    @classmethod
    def validate_constant(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError(f"constant_value must be between 0 and 1, got {value}")
        return value


def _validate_choice(kind: str, value: str, choices: Tuple[str, ...]) -> str:
    normalized = value.strip().lower()
    if normalized not in choices:
        raise ValueError(f"Unknown {kind} strategy '{value}'. Choose one of: {', '.join(choices)}")
    return normalized


class SchedulerConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Los_Angeles"
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    travel: TravelConfig = Field(default_factory=TravelConfig)
    alternatives: AlternativesConfig = Field(default_factory=AlternativesConfig)
    route: RouteConfig = Field(default_factory=RouteConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    strategies: StrategyConfig = Field(default_factory=StrategyConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "SchedulerConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            SchedulerConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"See scheduler.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load_or_default(cls, config_path: Optional[Path] = None) -> "SchedulerConfig":
        """Load the given (or default) config file, falling back to defaults when absent."""
        path = config_path or get_default_config_path()
        if config_path is None and not path.exists():
            return cls()
        return cls.load_from_yaml(path)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for scheduler.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "scheduler.yaml"

    if not config_path.exists():
        # Try in the project root (parent of therapyscheduler/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "scheduler.yaml"

    return config_path
