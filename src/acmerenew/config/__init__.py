"""Configuration subsystem for ACMERENEW.

Public API::

    from acmerenew.config import load_config

    settings = load_config("config.yaml")
    settings.acme.directory_url          # typed access
    settings.certificates[0].names       # effective name set
"""

from acmerenew.config.loader import (
    ConfigValidationError,
    load_config,
    load_config_data,
)
from acmerenew.config.settings import (
    DEFAULT_DIRECTORY_URL,
    AcmeRenewSettings,
    AcmeSettings,
    CertificateSettings,
    LoggingSettings,
    RenewalSettings,
    build_settings,
)

__all__ = [
    "DEFAULT_DIRECTORY_URL",
    "AcmeRenewSettings",
    "AcmeSettings",
    "CertificateSettings",
    "ConfigValidationError",
    "LoggingSettings",
    "RenewalSettings",
    "build_settings",
    "load_config",
    "load_config_data",
]
