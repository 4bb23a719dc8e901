"""ACMERENEW: ACME certificate issuance and renewal for managed hosts."""

__version__ = "1.0.0"
