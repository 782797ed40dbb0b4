"""
TipVault

Merchant tip accounts with:
- Volume-decaying platform fees
- Stake-backed premium fee discounts
- Staking reward settlement between merchant and platform
"""

__version__ = "0.1.0"
