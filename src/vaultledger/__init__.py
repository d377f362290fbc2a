"""vaultledger: single-asset custodial ledger with capacity and withdrawal limits."""

__version__ = "0.1.0"
