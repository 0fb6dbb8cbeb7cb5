"""Environment-driven settings for the storefront pipeline.

Settings are read once and cached. Tests that change the environment call
``reset_settings()`` so the next ``get_settings()`` re-reads it.
"""

import os
from dataclasses import dataclass, field


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CarrierSettings:
    """Connection details for one carrier integration."""

    code: str
    secret: str
    base_url: str | None = None
    api_key: str | None = None
    supports_push: bool = True


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    payment_gateway: str = "fake"
    gateway_base_url: str | None = None
    gateway_api_key: str | None = None
    gateway_webhook_secret: str = "test-secret"
    carriers: tuple[CarrierSettings, ...] = field(default_factory=tuple)
    upstream_timeout_seconds: float = 10.0
    supported_currencies: tuple[str, ...] = ("BRL", "USD", "EUR")
    admin_api_token: str | None = None
    cron_secret_token: str | None = None
    rate_limit_store: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    job_time_budget_seconds: float = 300.0

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def carrier(self, code: str) -> CarrierSettings | None:
        return next((c for c in self.carriers if c.code == code), None)

    @classmethod
    def from_env(cls) -> "Settings":
        carriers = []
        for code in _env_list("CARRIERS", "fake"):
            prefix = f"CARRIER_{code.upper()}"
            carriers.append(
                CarrierSettings(
                    code=code,
                    secret=os.environ.get(f"{prefix}_SECRET", "test-secret"),
                    base_url=os.environ.get(f"{prefix}_BASE_URL"),
                    api_key=os.environ.get(f"{prefix}_API_KEY"),
                    supports_push=_env_bool(f"{prefix}_PUSH", True),
                )
            )

        return cls(
            environment=os.environ.get("PROTEAN_ENV", "development"),
            payment_gateway=os.environ.get("PAYMENT_GATEWAY", "fake"),
            gateway_base_url=os.environ.get("GATEWAY_BASE_URL"),
            gateway_api_key=os.environ.get("GATEWAY_API_KEY"),
            gateway_webhook_secret=os.environ.get("GATEWAY_WEBHOOK_SECRET", "test-secret"),
            carriers=tuple(carriers),
            upstream_timeout_seconds=float(os.environ.get("UPSTREAM_TIMEOUT_SECONDS", "10")),
            supported_currencies=tuple(c.upper() for c in _env_list("SUPPORTED_CURRENCIES", "BRL,USD,EUR")),
            admin_api_token=os.environ.get("ADMIN_API_TOKEN") or None,
            cron_secret_token=os.environ.get("CRON_SECRET_TOKEN") or None,
            rate_limit_store=os.environ.get("RATE_LIMIT_STORE", "memory"),
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
            job_time_budget_seconds=float(os.environ.get("JOB_TIME_BUDGET_SECONDS", "300")),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (useful for tests)."""
    global _settings
    _settings = None
