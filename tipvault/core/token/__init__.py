"""Fungible token ledger"""
from tipvault.core.token.ledger import TokenLedger

__all__ = ["TokenLedger"]
