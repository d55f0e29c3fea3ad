"""Engine data models (SQLAlchemy ORM).

Import :data:`ALL_MODELS` for migration and table creation.
"""

from tron_gateway.engine.models.base import Amount, Base, TimestampMixin
from tron_gateway.engine.models.incoming_transaction import IncomingTransaction
from tron_gateway.engine.models.outgoing_transfer import OutgoingTransfer
from tron_gateway.engine.models.wallet import Wallet

ALL_MODELS = [Wallet, OutgoingTransfer, IncomingTransaction]

__all__ = [
    "ALL_MODELS",
    "Amount",
    "Base",
    "IncomingTransaction",
    "OutgoingTransfer",
    "TimestampMixin",
    "Wallet",
]
