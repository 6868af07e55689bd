from namjukes.core.config.loader import load_app_config, load_config
from namjukes.core.config.models import (
    AppConfig,
    CatalogConfig,
    GatewayConfig,
    LoggingConfig,
    RetryConfig,
    ScanServiceConfig,
)

__all__ = [
    "AppConfig",
    "CatalogConfig",
    "GatewayConfig",
    "LoggingConfig",
    "RetryConfig",
    "ScanServiceConfig",
    "load_app_config",
    "load_config",
]
