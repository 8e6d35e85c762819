"""
Registration service configuration package

Example:
    from DatasetDOI.Registration.config import load_config

    config = load_config(
        path="doi.yaml",
        cli_overrides={"dispatcher": {"max_workers": 4}},
    )
    config.config_hash()
"""

from .loader import DEFAULT_ENV_PREFIX, export_config_schema, load_config
from .models import (
    AuthConfig,
    DataSourceConfig,
    DispatcherConfig,
    DOIConfig,
    LoggingConfig,
    MailConfig,
    RegistrationConfig,
    ServerConfig,
    StorageConfig,
)

__all__ = [
    "RegistrationConfig",
    "DispatcherConfig",
    "DataSourceConfig",
    "AuthConfig",
    "StorageConfig",
    "DOIConfig",
    "MailConfig",
    "LoggingConfig",
    "ServerConfig",
    "load_config",
    "export_config_schema",
    "DEFAULT_ENV_PREFIX",
]
