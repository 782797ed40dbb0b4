"""Shared fixtures for TipVault tests."""

import pytest

from tipvault.core.config import EngineConfig, tokens
from tipvault.core.deployment import Deployment
from tipvault.crypto import address_from_label


@pytest.fixture
def cfg():
    return EngineConfig()


@pytest.fixture
def deployment(cfg):
    return Deployment.create(config=cfg, start_time=1_000)


@pytest.fixture
def merchant():
    return address_from_label("test.merchant")


@pytest.fixture
def payer():
    return address_from_label("test.payer")


@pytest.fixture
def outsider():
    return address_from_label("test.outsider")


@pytest.fixture
def account(deployment, merchant):
    return deployment.registry.create_account(merchant)


@pytest.fixture
def funded_rewards(deployment):
    """Deployment with a reward reserve large enough for any test stake."""
    deployment.fund_rewards(tokens(10_000_000))
    return deployment


@pytest.fixture
def pay_tip(deployment):
    """Mint, approve and tip `amount` native units."""
    def _pay(account, payer, amount):
        deployment.mint(payer, amount)
        deployment.token.approve(payer, account.address, amount)
        return account.tip(payer, amount)
    return _pay


@pytest.fixture
def open_premium(deployment):
    """Mint, approve and stake for premium. Returns the stake id."""
    def _open(account, merchant, amount=None, stake_type=0):
        amount = amount if amount is not None else deployment.config.premium_threshold
        deployment.mint(merchant, amount)
        deployment.token.approve(merchant, account.address, amount)
        return account.stake_for_premium(merchant, amount, stake_type)
    return _open
