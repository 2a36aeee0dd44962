"""
Cashback settlement service.

Settles cashback rewards on EVM networks, tracks deployed contracts and
ingests on-chain events.
"""

__version__ = "1.0.0"
