"""
Core domain models, fixed-point math, and contracts.

Building blocks independent of the ledger, persistence and transaction layers.
"""
