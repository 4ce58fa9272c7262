"""
StreamPulse - Configuration Module
"""
from typing import Dict, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "StreamPulse"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./storage/streampulse.db"

    # Polling
    metrics_interval_ms: int = 1000
    history_capacity: int = 60
    auto_start_polling: bool = True

    # Monitored capture software
    monitored_process_names: str = "obs64.exe,obs32.exe,obs,obs-studio"

    # Session comparison
    comparison_locale: str = "en"

    # Severity thresholds (percent)
    cpu_warning_threshold: float = 70.0
    cpu_critical_threshold: float = 90.0
    memory_warning_threshold: float = 80.0
    memory_critical_threshold: float = 95.0
    gpu_warning_threshold: float = 85.0
    gpu_critical_threshold: float = 95.0
    encoder_warning_threshold: float = 70.0
    encoder_critical_threshold: float = 90.0

    # Logging
    log_file: str = "logs/streampulse.log"
    log_rotation: str = "10 MB"
    log_retention: str = "7 days"

    # CORS
    cors_origins: str = "http://localhost:1420,http://localhost:5173"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def monitored_process_list(self) -> List[str]:
        return [name.strip().lower() for name in self.monitored_process_names.split(",") if name.strip()]

    def threshold_table(self) -> Dict[str, Dict[str, float]]:
        """Raw {domain: {warning, critical}} table built from the threshold fields"""
        return {
            domain: {
                "warning": getattr(self, f"{domain}_warning_threshold"),
                "critical": getattr(self, f"{domain}_critical_threshold"),
            }
            for domain in ("cpu", "memory", "gpu", "encoder")
        }

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STREAMPULSE_"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
