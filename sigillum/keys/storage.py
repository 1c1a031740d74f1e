"""
Durable storage for the engine's keypair.

The keypair is stored as a small JSON document holding both PEM blocks.
"""

import json
import logging
import os
import sys
import tempfile
from dataclasses import dataclass
from typing import Optional

from ..errors import MalformedKeyError

__all__ = [
    'StoredKeypair',
    'KeyStorage',
    'FileKeyStorage',
    'default_key_dir',
    'KEYPAIR_FILE_NAME',
    'SIGILLUM_HOME_ENV_VAR',
]

logger = logging.getLogger(__name__)

KEYPAIR_FILE_NAME = 'keypair.json'
SIGILLUM_HOME_ENV_VAR = 'SIGILLUM_HOME'
APP_DIR_NAME = 'sigillum'


@dataclass(frozen=True)
class StoredKeypair:
    """
    PEM-encoded keypair, as persisted.
    """

    public_key: str
    """
    SubjectPublicKeyInfo PEM block.
    """

    private_key: str
    """
    PKCS#8 PEM block.
    """

    def __repr__(self):
        return 'StoredKeypair(public_key=%r, private_key=<redacted>)' % (
            self.public_key,
        )


def default_key_dir() -> str:
    """
    Determine the directory in which the keypair is stored by default.

    The ``SIGILLUM_HOME`` environment variable takes precedence; otherwise
    the usual per-user application data directory of the platform is used.
    """
    override = os.environ.get(SIGILLUM_HOME_ENV_VAR)
    if override:
        return override
    if sys.platform == 'win32':
        base = os.environ.get('APPDATA') or os.path.expanduser('~')
    elif sys.platform == 'darwin':
        base = os.path.expanduser('~/Library/Application Support')
    else:
        base = os.environ.get('XDG_DATA_HOME') or os.path.expanduser(
            '~/.local/share'
        )
    return os.path.join(base, APP_DIR_NAME)


class KeyStorage:
    """
    Interface for durable keypair storage backends.
    """

    def exists(self) -> bool:
        raise NotImplementedError

    def read(self) -> Optional[StoredKeypair]:
        """
        Read the stored keypair.

        :return:
            The stored keypair, or ``None`` if nothing was stored yet.
        :raises MalformedKeyError:
            if the stored data cannot be decoded.
        """
        raise NotImplementedError

    def write(self, keypair: StoredKeypair):
        raise NotImplementedError


class FileKeyStorage(KeyStorage):
    """
    Store the keypair in a JSON file inside a directory, readable by the
    current user only.

    :param directory:
        Directory to store the keypair in. Created on first write.
        Defaults to :func:`default_key_dir`.
    """

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory or default_key_dir()

    @property
    def path(self) -> str:
        return os.path.join(self.directory, KEYPAIR_FILE_NAME)

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def read(self) -> Optional[StoredKeypair]:
        try:
            with open(self.path, 'r', encoding='utf8') as inf:
                raw = inf.read()
        except FileNotFoundError:
            return None
        try:
            key_dict = json.loads(raw)
            return StoredKeypair(
                public_key=key_dict['public_key'],
                private_key=key_dict['private_key'],
            )
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedKeyError(
                f"Key file {self.path} is not a valid keypair file."
            ) from e

    def write(self, keypair: StoredKeypair):
        os.makedirs(self.directory, exist_ok=True)
        payload = json.dumps(
            {
                'public_key': keypair.public_key,
                'private_key': keypair.private_key,
            },
            indent=2,
        )
        # the key file is only ever replaced as a whole
        fd, tmp_path = tempfile.mkstemp(
            dir=self.directory, prefix='.keypair-', suffix='.tmp'
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf8') as outf:
                outf.write(payload)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:  # pragma: nocover
                pass
            raise
        logger.debug(f"Keypair written to {self.path}")
