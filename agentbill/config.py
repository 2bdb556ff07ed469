"""SDK configuration."""

import os
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://uenhjwdtnxtchlmqarjo.supabase.co"
DEFAULT_SERVICE_NAME = "agentbill-python-sdk"
DEFAULT_TIMEOUT = 10.0

OTEL_COLLECTOR_PATH = "/functions/v1/otel-collector"
RECORD_SIGNALS_PATH = "/functions/v1/record-signals"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AgentBillConfig:
    """
    Immutable settings shared by the tracer and the provider wrappers.

    Args:
        api_key: AgentBill API key, sent as a bearer token.
        base_url: Base URL of the AgentBill backend.
        customer_id: Added to every span as ``customer.id`` and to signals.
        debug: Log delivery successes and failures.
        timeout: Per-request timeout in seconds for exports and signals.
        service_name: Reported as ``service.name`` on spans and the resource.
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    customer_id: str | None = None
    debug: bool = False
    timeout: float = DEFAULT_TIMEOUT
    service_name: str = DEFAULT_SERVICE_NAME

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("api_key must be provided")
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @classmethod
    def from_env(cls, **overrides) -> "AgentBillConfig":
        """
        Build a config from environment variables.

        Reads:
        - AGENTBILL_API_KEY
        - AGENTBILL_BASE_URL (empty or unset uses the default endpoint)
        - AGENTBILL_CUSTOMER_ID
        - AGENTBILL_DEBUG ("1", "true", "yes" or "on")
        - AGENTBILL_TIMEOUT (seconds)
        - AGENTBILL_SERVICE_NAME

        Keyword overrides take precedence over the environment.
        """
        values: dict = {
            "api_key": os.getenv("AGENTBILL_API_KEY", ""),
            "base_url": os.getenv("AGENTBILL_BASE_URL") or DEFAULT_BASE_URL,
            "customer_id": os.getenv("AGENTBILL_CUSTOMER_ID") or None,
            "debug": os.getenv("AGENTBILL_DEBUG", "").strip().lower() in _TRUTHY,
            "service_name": os.getenv("AGENTBILL_SERVICE_NAME") or DEFAULT_SERVICE_NAME,
        }
        timeout = os.getenv("AGENTBILL_TIMEOUT")
        if timeout:
            values["timeout"] = float(timeout)
        values.update(overrides)
        return cls(**values)

    @property
    def otel_collector_url(self) -> str:
        return self.base_url.rstrip("/") + OTEL_COLLECTOR_PATH

    @property
    def signals_url(self) -> str:
        return self.base_url.rstrip("/") + RECORD_SIGNALS_PATH

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
