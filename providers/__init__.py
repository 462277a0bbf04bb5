"""Clients for blockchain data providers.

Currently only Blockfrost (Cardano) is supported; see
:mod:`providers.blockfrost`.
"""

from providers.blockfrost import BlockfrostClient, Paginated

__all__ = ["BlockfrostClient", "Paginated"]
