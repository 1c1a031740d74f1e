import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from sigillum.keys.pemder import private_key_to_pem, public_key_to_pem
from sigillum.keys.store import KeyStore


def _pem_pair(key_size=2048):
    private_key = rsa.generate_private_key(
        public_exponent=65537, key_size=key_size
    )
    return (
        private_key_to_pem(private_key),
        public_key_to_pem(private_key.public_key()),
    )


@pytest.fixture(scope='session')
def alice_pems():
    return _pem_pair()


@pytest.fixture(scope='session')
def bob_pems():
    return _pem_pair()


@pytest.fixture
def key_store(alice_pems) -> KeyStore:
    store = KeyStore()
    store.import_keys(*alice_pems)
    return store


@pytest.fixture
def other_key_store(bob_pems) -> KeyStore:
    store = KeyStore()
    store.import_keys(*bob_pems)
    return store
