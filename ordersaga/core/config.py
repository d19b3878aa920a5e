"""
OrderSagaConfig - Unified configuration for the order saga.

Holds the knobs the saga, the stores and the reconciler read at startup:
- Outbound call timeout for identity, catalog and payment collaborators
- Storage location for orders and the saga log
- Reconciler cadence and give-up threshold
- Observability (metrics, log level/format)

Example:
    >>> from ordersaga.core.config import OrderSagaConfig, configure
    >>>
    >>> config = OrderSagaConfig(
    ...     storage_url="sqlite:///./orders.db",
    ...     call_timeout=3.0,
    ... )
    >>> configure(config)

Values can also come from the environment (``ORDERSAGA_*``) or a YAML file.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from ordersaga.core.logger import get_logger

logger = get_logger(__name__)


@dataclass
class OrderSagaConfig:
    """
    Attributes:
        call_timeout: Seconds allowed for each collaborator call
        storage_url: ``memory://`` or ``sqlite:///path/to/orders.db``
        reconcile_interval: Seconds between reconciler passes
        reconcile_stale_after: Seconds a pending order must sit untouched before reconciling
        reconcile_max_attempts: Reconcile attempts per order before giving up
        metrics: Collect in-process metrics
        prometheus: Export metrics through prometheus-client
        log_level: Level for the ``ordersaga`` logger namespace
        log_json: Emit JSON log lines
    """

    call_timeout: float = 5.0
    storage_url: str = "memory://"
    reconcile_interval: float = 30.0
    reconcile_stale_after: float = 60.0
    reconcile_max_attempts: int = 5
    metrics: bool = True
    prometheus: bool = False
    log_level: str = "INFO"
    log_json: bool = True

    def __post_init__(self) -> None:
        if self.call_timeout <= 0:
            msg = f"call_timeout must be positive, got {self.call_timeout}"
            raise ValueError(msg)
        if self.reconcile_stale_after <= self.call_timeout:
            # A charge still in flight must never look stale
            msg = (
                f"reconcile_stale_after ({self.reconcile_stale_after}s) must exceed "
                f"call_timeout ({self.call_timeout}s)"
            )
            raise ValueError(msg)
        if self.reconcile_max_attempts < 1:
            msg = f"reconcile_max_attempts must be at least 1, got {self.reconcile_max_attempts}"
            raise ValueError(msg)
        if not self.storage_url.startswith(("memory://", "sqlite://")):
            msg = f"Unknown storage URL scheme: {self.storage_url}"
            raise ValueError(msg)

    def with_storage(self, storage_url: str) -> OrderSagaConfig:
        """Create a new config with a different storage URL (immutable update)."""
        return replace(self, storage_url=storage_url)

    @classmethod
    def from_env(cls, load_dotenv: bool = True) -> OrderSagaConfig:
        """
        Create configuration from environment variables.

        Environment variables:
            ORDERSAGA_CALL_TIMEOUT: Collaborator call timeout in seconds
            ORDERSAGA_STORAGE_URL: memory:// or sqlite:///path
            ORDERSAGA_RECONCILE_INTERVAL: Seconds between reconciler passes
            ORDERSAGA_RECONCILE_STALE_AFTER: Pending age before reconciling
            ORDERSAGA_RECONCILE_MAX_ATTEMPTS: Attempts before abandoning
            ORDERSAGA_METRICS: Enable metrics (true/false)
            ORDERSAGA_PROMETHEUS: Export through prometheus-client (true/false)
            ORDERSAGA_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR
            ORDERSAGA_LOG_JSON: JSON log lines (true/false)
        """
        from ordersaga.core.env import get_env

        env = get_env()
        if load_dotenv:
            env.load()

        defaults = cls()
        return cls(
            call_timeout=env.get_float("ORDERSAGA_CALL_TIMEOUT", defaults.call_timeout),
            storage_url=(
                env.get("ORDERSAGA_STORAGE_URL", defaults.storage_url) or defaults.storage_url
            ),
            reconcile_interval=env.get_float(
                "ORDERSAGA_RECONCILE_INTERVAL", defaults.reconcile_interval
            ),
            reconcile_stale_after=env.get_float(
                "ORDERSAGA_RECONCILE_STALE_AFTER", defaults.reconcile_stale_after
            ),
            reconcile_max_attempts=env.get_int(
                "ORDERSAGA_RECONCILE_MAX_ATTEMPTS", defaults.reconcile_max_attempts
            ),
            metrics=env.get_bool("ORDERSAGA_METRICS", defaults.metrics),
            prometheus=env.get_bool("ORDERSAGA_PROMETHEUS", defaults.prometheus),
            log_level=(env.get("ORDERSAGA_LOG_LEVEL", defaults.log_level) or "INFO").upper(),
            log_json=env.get_bool("ORDERSAGA_LOG_JSON", defaults.log_json),
        )

    @classmethod
    def from_file(cls, file_path: str | Path, substitute_env: bool = True) -> OrderSagaConfig:
        """
        Load configuration from a YAML file.

        Example ``ordersaga.yaml``::

            call_timeout: 3
            storage:
              url: sqlite:///${ORDERS_DB:-./orders.db}
            reconciler:
              interval: 15
              stale_after: 120
              max_attempts: 3
            observability:
              metrics: true
              prometheus: false
              log_level: INFO
              log_json: true
        """
        import yaml

        from ordersaga.core.env import get_env

        path = Path(file_path)
        if not path.exists():
            msg = f"Configuration file not found: {file_path}"
            raise FileNotFoundError(msg)

        with path.open() as f:
            data = yaml.safe_load(f)

        if not data:
            return cls()

        if substitute_env:
            env = get_env()
            env.load()
            data = env.substitute_dict(data)

        defaults = cls()
        storage_data = data.get("storage", {})
        reconciler_data = data.get("reconciler", {})
        obs_data = data.get("observability", {})

        return cls(
            call_timeout=float(data.get("call_timeout", defaults.call_timeout)),
            storage_url=storage_data.get("url", defaults.storage_url),
            reconcile_interval=float(reconciler_data.get("interval", defaults.reconcile_interval)),
            reconcile_stale_after=float(
                reconciler_data.get("stale_after", defaults.reconcile_stale_after)
            ),
            reconcile_max_attempts=int(
                reconciler_data.get("max_attempts", defaults.reconcile_max_attempts)
            ),
            metrics=bool(obs_data.get("metrics", defaults.metrics)),
            prometheus=bool(obs_data.get("prometheus", defaults.prometheus)),
            log_level=str(obs_data.get("log_level", defaults.log_level)).upper(),
            log_json=bool(obs_data.get("log_json", defaults.log_json)),
        )


# Global configuration singleton
_global_config: OrderSagaConfig | None = None


def get_config() -> OrderSagaConfig:
    """Get the global order saga configuration."""
    global _global_config
    if _global_config is None:
        _global_config = OrderSagaConfig()
    return _global_config


def configure(config: OrderSagaConfig) -> None:
    """Set the global order saga configuration."""
    global _global_config
    _global_config = config
    logger.info(f"Order saga configured: storage={config.storage_url}")
