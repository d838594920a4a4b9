import random
import socket

import pytest

from chainchat.common.config import Config
from chainchat.crypto.keys import KeyBundle, KeyPair, derive_key_pair


@pytest.fixture
def textbook_keys():
    """p=61, q=53, e=17 -> n=3233, d=2753."""
    return KeyPair(e=17, d=2753, n=3233)


@pytest.fixture
def bundle():
    server = derive_key_pair(7919, 7907, e_start=5000)
    ca = derive_key_pair(9973, 9967, e_start=6000)
    return KeyBundle(ca=ca, server=server)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def sock_pair():
    a, b = socket.socketpair()
    yield a, b
    a.close()
    b.close()


@pytest.fixture
def config(tmp_path):
    return Config(transcripts_dir=str(tmp_path / "transcripts"))
