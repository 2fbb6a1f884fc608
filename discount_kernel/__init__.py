"""
Discount Kernel

Domain value objects, typed exceptions, structured logging and persistence
primitives for the proposal discount engine:
- Deterministic, clock-injected domain types
- Decimal-only money arithmetic rounded half-away-from-zero to cents
- Append-only loyalty ledger
- Approval request lifecycle
"""

__version__ = "0.1.0"
