from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


# Get the directory where this config.py file is located
_config_dir = Path(__file__).parent
_env_file = _config_dir.parent / ".env"  # services/core/.env


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Storage (durable response cache + usage stats)
    sqlite_path: str = "data/cache.db"
    cache_max_bytes: int = 0  # 0 = no quota

    # Market data API
    polygon_api_key: str | None = None
    polygon_base_url: str = "https://api.polygon.io"
    request_timeout_seconds: float = 15.0

    # Usage accounting
    daily_request_budget: int = 100
    usage_warning_ratio: float = 0.8

    # Outbound request throttling
    throttle_spacing_seconds: float = 0.2
    throttle_max_concurrent: int = 1

    # Analytics
    max_chart_points: int = 500  # 0 = pick from payload size
    volume_profile_buckets: int = 20
    significant_level_threshold: float = 0.7
    default_indicators: str = "sma,ema,bollinger,rsi,macd"

    # Per-category TTL overrides in seconds: "aggregates:300,status:60"
    cache_ttls: str = ""

    def get_default_indicators(self) -> list[str]:
        """Parse the default indicator list (lowercase names)."""
        return [i.strip().lower() for i in self.default_indicators.split(",") if i.strip()]

    def get_cache_ttl_overrides(self) -> dict[str, float]:
        """Parse TTL overrides into {category: seconds}."""
        overrides: dict[str, float] = {}
        for item in self.cache_ttls.split(","):
            if not item.strip():
                continue
            name, _, seconds = item.partition(":")
            if not seconds.strip():
                raise ValueError(f"Invalid cache TTL override '{item}'. Use like status:60.")
            overrides[name.strip().lower()] = float(seconds)
        return overrides


def get_settings() -> Settings:
    return Settings()
