"""Logging subsystem for ACMERENEW.

Public API::

    from acmerenew.logging import bind_certificate, configure_logging

    configure_logging(settings.logging)
    with bind_certificate("example.com"):
        ...
"""

from acmerenew.logging.setup import bind_certificate, certificate_context, configure_logging

__all__ = ["bind_certificate", "certificate_context", "configure_logging"]
