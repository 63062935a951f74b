from __future__ import annotations

import pytest

from entropy.chain.hashchain import HashChain
from entropy.service import EntropyService

from .util import bootstrap, make_service


@pytest.fixture
def chain() -> HashChain:
    return HashChain.from_secret(b"provider-secret", 32)


@pytest.fixture
def svc(chain: HashChain) -> EntropyService:
    return bootstrap(make_service(), chain)
