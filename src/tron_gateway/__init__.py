"""tron-gateway: custodial TRC-20 payment gateway."""

__version__ = "0.1.0"
