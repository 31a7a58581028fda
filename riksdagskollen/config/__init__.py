"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    AnalysisSettings,
    BatchSettings,
    FetchSettings,
    GlobalConfig,
    ProxyEndpoint,
    RemoteJobSettings,
    RiksdagSettings,
    StoreSettings,
)

__all__ = [
    "AnalysisSettings",
    "BatchSettings",
    "ConfigLocator",
    "ConfigRepository",
    "FetchSettings",
    "GlobalConfig",
    "ProxyEndpoint",
    "RemoteJobSettings",
    "RiksdagSettings",
    "StoreSettings",
]
