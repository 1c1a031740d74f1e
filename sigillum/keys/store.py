import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import (
    KeyGenerationError,
    KeyMismatchError,
    MalformedKeyError,
    NoKeyLoadedError,
    SigillumError,
)
from .pemder import (
    MIN_KEY_SIZE,
    load_private_key_from_pemder_data,
    load_public_key_from_pemder_data,
    private_key_to_pem,
    public_key_info,
    public_key_to_pem,
)
from .storage import KeyStorage, StoredKeypair

__all__ = ['Keypair', 'KeyStore', 'DEFAULT_KEY_SIZE', 'MAX_KEY_SIZE']

logger = logging.getLogger(__name__)

DEFAULT_KEY_SIZE = 2048
MAX_KEY_SIZE = 4096
PUBLIC_EXPONENT = 65537


@dataclass(frozen=True)
class Keypair:
    """
    An RSA keypair. Instances are immutable; the :class:`.KeyStore` replaces
    them wholesale.
    """

    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey

    @property
    def key_size(self) -> int:
        return self.public_key.key_size

    @property
    def public_key_pem(self) -> str:
        return public_key_to_pem(self.public_key)

    @property
    def fingerprint(self) -> str:
        """
        SHA-256 fingerprint of the DER-encoded public key, in hex.
        """
        spki = public_key_info(self.public_key)
        return hashlib.sha256(spki.dump()).hexdigest()

    def matches(self, public_key: rsa.RSAPublicKey) -> bool:
        return self.public_key.public_numbers() == public_key.public_numbers()

    def __repr__(self):
        return f'Keypair(rsa-{self.key_size}, fingerprint={self.fingerprint})'


class KeyStore:
    """
    Holder of the engine's signing keypair.

    A key store holds at most one keypair at a time. :meth:`generate` and
    :meth:`import_keys` replace it atomically; signing and verification
    operations should grab a snapshot through :meth:`current` once, and use
    that snapshot throughout.

    :param storage:
        Optional durable storage backend. If set, newly generated or imported
        keypairs are persisted automatically.
    :param key_size:
        Default RSA modulus size for :meth:`generate`.
    """

    def __init__(
        self,
        storage: Optional[KeyStorage] = None,
        key_size: int = DEFAULT_KEY_SIZE,
    ):
        self.storage = storage
        self.key_size = key_size
        self._lock = threading.RLock()
        self._keypair: Optional[Keypair] = None

    @classmethod
    def open(cls, storage: KeyStorage, **kwargs) -> 'KeyStore':
        """
        Instantiate a key store, and load the keypair from storage
        if one is present there.

        :param storage:
            The storage backend to use.
        :return:
            A :class:`.KeyStore` instance.
        """
        result = cls(storage=storage, **kwargs)
        result.load()
        return result

    def has_key(self) -> bool:
        return self._keypair is not None

    def current(self) -> Keypair:
        """
        Return the resident keypair.

        :raises NoKeyLoadedError:
            if there is no keypair.
        """
        keypair = self._keypair
        if keypair is None:
            raise NoKeyLoadedError(
                "No keypair loaded; generate or import a key first."
            )
        return keypair

    def public_key_pem(self) -> str:
        return self.current().public_key_pem

    def export(self) -> str:
        """
        Export the resident private key as a PKCS#8 PEM block.

        :raises NoKeyLoadedError:
            if there is no keypair.
        """
        keypair = self.current()
        logger.info(f"Exporting private key {keypair.fingerprint}")
        return private_key_to_pem(keypair.private_key)

    def generate(self, key_size: Optional[int] = None) -> Keypair:
        """
        Generate a fresh keypair and make it the resident one.

        :param key_size:
            RSA modulus size in bits. Defaults to the store's key size.
        :return:
            The new keypair.
        :raises KeyGenerationError:
            if the key could not be generated.
        """
        key_size = key_size or self.key_size
        if not (MIN_KEY_SIZE <= key_size <= MAX_KEY_SIZE):
            raise KeyGenerationError(
                f"RSA key size must be between {MIN_KEY_SIZE} and "
                f"{MAX_KEY_SIZE} bits, not {key_size}."
            )
        try:
            private_key = rsa.generate_private_key(
                public_exponent=PUBLIC_EXPONENT, key_size=key_size
            )
        except (ValueError, OSError, UnsupportedAlgorithm) as e:
            raise KeyGenerationError(f"Failed to generate key: {e}") from e
        keypair = Keypair(
            private_key=private_key, public_key=private_key.public_key()
        )
        self._replace(keypair)
        logger.info(f"Generated {key_size}-bit keypair {keypair.fingerprint}")
        return keypair

    def import_keys(self, private_pem, public_pem) -> Keypair:
        """
        Import a keypair from PEM (or DER) data, and make it the resident one.

        :param private_pem:
            The private key.
        :param public_pem:
            The public key. It must be the public half of ``private_pem``.
        :return:
            The imported keypair.
        :raises MalformedKeyError:
            if either key fails to parse.
        :raises KeyMismatchError:
            if the keys do not belong together.
        """
        private_key = load_private_key_from_pemder_data(private_pem)
        public_key = load_public_key_from_pemder_data(public_pem)
        keypair = Keypair(
            private_key=private_key, public_key=private_key.public_key()
        )
        if not keypair.matches(public_key):
            raise KeyMismatchError(
                "The private key does not correspond to the supplied "
                "public key."
            )
        self._replace(keypair)
        logger.info(f"Imported keypair {keypair.fingerprint}")
        return keypair

    def load(self) -> bool:
        """
        Load the keypair from the storage backend, if there is one.

        :return:
            ``True`` if a keypair was loaded.
        :raises MalformedKeyError:
            if the stored keypair is invalid.
        :raises KeyMismatchError:
            if the stored private and public key do not belong together.
        """
        if self.storage is None:
            return False
        stored = self.storage.read()
        if stored is None:
            return False
        private_key = load_private_key_from_pemder_data(stored.private_key)
        public_key = load_public_key_from_pemder_data(stored.public_key)
        keypair = Keypair(
            private_key=private_key, public_key=private_key.public_key()
        )
        if not keypair.matches(public_key):
            raise KeyMismatchError(
                "Stored private key does not correspond to the stored "
                "public key."
            )
        with self._lock:
            self._keypair = keypair
        logger.debug(f"Loaded keypair {keypair.fingerprint} from storage")
        return True

    def save(self):
        """
        Write the resident keypair to the storage backend.

        :raises NoKeyLoadedError:
            if there is no keypair.
        """
        keypair = self.current()
        if self.storage is None:
            raise SigillumError("This key store has no storage backend.")
        self.storage.write(_to_stored(keypair))

    def _replace(self, keypair: Keypair):
        with self._lock:
            if self.storage is not None:
                # storage is written before the resident keypair is swapped
                self.storage.write(_to_stored(keypair))
            self._keypair = keypair


def _to_stored(keypair: Keypair) -> StoredKeypair:
    return StoredKeypair(
        public_key=keypair.public_key_pem,
        private_key=private_key_to_pem(keypair.private_key),
    )
