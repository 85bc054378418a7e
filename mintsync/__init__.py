"""
MintSync - ledger-to-store synchronization engine.

Mirrors NFT mints, transfers and quest completions from the chain
into the relational store.
"""

__version__ = "0.1.0"
