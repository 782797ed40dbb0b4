"""Merchant account logic and state"""
from tipvault.core.account.merchant_account import (
    AccountState,
    MerchantAccount,
    StakeSettlement,
    TipReceipt,
)

__all__ = [
    "AccountState",
    "MerchantAccount",
    "StakeSettlement",
    "TipReceipt",
]
