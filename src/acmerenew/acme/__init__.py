"""ACME protocol layer: order/authorization models and transports."""

from acmerenew.acme.client import HttpAcmeTransport
from acmerenew.acme.models import Authorization, Challenge, Order
from acmerenew.acme.transport import AcmeTransport, TransportError

__all__ = [
    "AcmeTransport",
    "Authorization",
    "Challenge",
    "HttpAcmeTransport",
    "Order",
    "TransportError",
]
