"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "verdifi-live"
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]

    # Energy mix and sampling
    region: str = "DE"
    cpu_tdp_watts: float = 65.0

    # Session loop cadence
    settle_seconds: float = 1.0
    pause_seconds: float = 1.0
    score_every: int = 5

    # Financial model
    revenue_baseline: float = 1_000_000.0
    carbon_price_per_ton: float = 50.0

    # Security monitor
    security_max_events: int = 1000
    security_threat_window: int = 50
    security_stats_window: int = 100
    connection_burst_threshold: int = 10

    # Baseline ESG metrics for live sessions (footprint and renewables are measured)
    default_waste_reduction: float = 75.0
    default_employee_satisfaction: float = 85.0
    default_diversity: float = 60.0
    default_community_impact: float = 70.0
    default_board_independence: float = 80.0
    default_transparency: float = 75.0
    default_ethics_compliance: float = 85.0

    model_config = {"env_prefix": "VERDIFI_"}


settings = Settings()
