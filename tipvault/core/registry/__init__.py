"""
TipVault Account Registry Module.

One merchant account per merchant.
"""

from tipvault.core.registry.account_registry import AccountRegistry

__all__ = ["AccountRegistry"]
