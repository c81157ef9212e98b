"""
Configuration management with Pydantic validation.

Loads settings from YAML config file and environment variables.
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ExchangeConfig(BaseModel):
    """Exchange rate used to convert agent quotes into the requester's currency."""

    exchange_rate: Decimal = Field(default=Decimal("1"), gt=0)
    source_currency: str = "CNY"
    target_currency: str = "MNT"

    @field_validator("exchange_rate", mode="before")
    @classmethod
    def coerce_rate(cls, v):
        # YAML floats go through str() so 450.1 does not become 450.0999...
        if isinstance(v, float):
            return Decimal(str(v))
        return v


class OrderLimitConfig(BaseModel):
    """Per-requester order quota, enforced at order creation."""

    enabled: bool = False
    max_per_day: int = Field(default=10, ge=1, le=1000)
    max_active: int = Field(default=10, ge=1, le=1000)


class RewardConfig(BaseModel):
    """Reward points credited to an agent when the admin pays out an order."""

    credit_formula: Literal["constant", "commission"] = "constant"
    constant_points: Decimal = Field(default=Decimal("1"), gt=0)


class PolicyConfig(BaseModel):
    """Input rules applied by the settlement engine."""

    min_cancel_reason_length: int = Field(default=5, ge=1, le=500)


class StorageConfig(BaseModel):
    """Storage paths configuration."""

    ledger_path: str | None = "./data/ledger"
    logs_path: str = "./logs"


class MonitoringConfig(BaseModel):
    """Logging and metrics configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    order_log_path: str | None = "./logs/orders.csv"
    metrics_enabled: bool = True
    metrics_port: int | None = Field(default=None, ge=1, le=65535)
    console_events: bool = True
    error_log_max_bytes: int = Field(default=5_000_000, ge=100_000, le=50_000_000)
    error_log_backup_count: int = Field(default=3, ge=1, le=20)


class Settings(BaseSettings):
    """Main application settings."""

    environment: Literal["development", "production"] = "development"

    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    limits: OrderLimitConfig = Field(default_factory=OrderLimitConfig)
    rewards: RewardConfig = Field(default_factory=RewardConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "env_nested_delimiter": "__",
        "populate_by_name": True,
    }


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Load settings from YAML config file and environment variables.

    ``EXCHANGE_RATE`` and ``ORDER_LIMITS_ENABLED`` in the environment override
    the file, since the rate and quota switches are owned by the operator's
    settings store rather than by the deployment config.
    """
    config_data = {}

    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "config.yaml")

    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            config_data = yaml.safe_load(f) or {}

    env_rate = os.environ.get("EXCHANGE_RATE")
    if env_rate:
        config_data.setdefault("exchange", {})["exchange_rate"] = env_rate
    env_limits = os.environ.get("ORDER_LIMITS_ENABLED")
    if env_limits is not None:
        config_data.setdefault("limits", {})["enabled"] = env_limits

    env_path = config_file.parent / ".env"
    return Settings(**config_data, _env_file=env_path)


def create_default_config(path: str | Path = "config.yaml") -> None:
    """Create a default configuration file."""
    default_config = {
        "environment": "development",
        "exchange": {
            "exchange_rate": "1",
            "source_currency": "CNY",
            "target_currency": "MNT",
        },
        "limits": {
            "enabled": False,
            "max_per_day": 10,
            "max_active": 10,
        },
        "rewards": {
            "credit_formula": "constant",
            "constant_points": "1",
        },
        "policy": {
            "min_cancel_reason_length": 5,
        },
        "storage": {
            "ledger_path": "./data/ledger",
            "logs_path": "./logs",
        },
        "monitoring": {
            "log_level": "INFO",
            "order_log_path": "./logs/orders.csv",
            "metrics_enabled": True,
            "metrics_port": None,
            "console_events": True,
            "error_log_max_bytes": 5000000,
            "error_log_backup_count": 3,
        },
    }

    with open(path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)
