"""
Key management: RSA keypair generation, import/export and durable storage.
"""

from .pemder import (
    load_private_key_from_pemder_data,
    load_public_key_from_pemder_data,
)
from .storage import FileKeyStorage, KeyStorage, StoredKeypair
from .store import DEFAULT_KEY_SIZE, Keypair, KeyStore

__all__ = [
    'DEFAULT_KEY_SIZE',
    'Keypair',
    'KeyStore',
    'KeyStorage',
    'FileKeyStorage',
    'StoredKeypair',
    'load_private_key_from_pemder_data',
    'load_public_key_from_pemder_data',
]
