"""
Standard type definitions for database models.

Provides consistent types for monetary and chain fields across all models.
"""

from sqlalchemy import DECIMAL, String

# Standard money type for cashback amounts
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Native-unit fees (gas fee in BNB/ETH)
# Precision: 36 digits total, 18 after decimal point
BigMoneyType = DECIMAL(36, 18)

# Cashback percentage (e.g. 5.00%)
PercentType = DECIMAL(5, 2)

# Raw uint256 values (wei, token base units) stored as decimal strings
UInt256Type = String(78)

# 0x-prefixed hashes and addresses
TxHashType = String(66)
AddressType = String(42)
