"""
Services.

Synchronization workers and the ledger/metadata collaborators they use.
"""
