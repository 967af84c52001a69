"""Shared fixtures for the CrossLock test suite."""

import pytest

from crosslock import HoldingRef
from crosslock.core.hashing import generate_secret

from helpers.scenario import MAKER, RESOLVER, TAKER, TOKEN, build_world, default_auction


@pytest.fixture
def engine():
    """A fresh engine with funded principals on a FixedClock."""
    return build_world()


@pytest.fixture
def clock(engine):
    return engine.clock


@pytest.fixture
def custody(engine):
    return engine.custody


@pytest.fixture
def auction():
    return default_auction()


@pytest.fixture
def secret_pair():
    """(secret, hashlock)"""
    return generate_secret()


@pytest.fixture
def maker_holding():
    return HoldingRef(MAKER, TOKEN)


@pytest.fixture
def taker_holding():
    return HoldingRef(TAKER, TOKEN)


@pytest.fixture
def resolver_holding():
    return HoldingRef(RESOLVER, TOKEN)
