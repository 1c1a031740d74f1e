from typing import Optional, Union

from asn1crypto import keys, pem
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import (
    RSAPrivateKey,
    RSAPublicKey,
)

from ..errors import MalformedKeyError

__all__ = [
    'MIN_KEY_SIZE',
    'load_private_key_from_pemder_data',
    'load_public_key_from_pemder_data',
    'private_key_to_pem',
    'public_key_to_pem',
    'public_key_info',
]

MIN_KEY_SIZE = 2048


def _as_bytes(key_data: Union[str, bytes]) -> bytes:
    if isinstance(key_data, str):
        return key_data.encode('ascii', errors='replace')
    elif isinstance(key_data, (bytes, bytearray, memoryview)):
        return bytes(key_data)
    raise MalformedKeyError(
        f"Key material must be text or bytes, not {type(key_data).__name__}"
    )


def _check_rsa_key(key, what: str):
    if not isinstance(key, (RSAPrivateKey, RSAPublicKey)):
        raise MalformedKeyError(
            f"Expected an RSA {what}, but got key of type {type(key).__name__}"
        )
    if key.key_size < MIN_KEY_SIZE:
        raise MalformedKeyError(
            f"RSA {what} has a {key.key_size}-bit modulus; "
            f"at least {MIN_KEY_SIZE} bits are required."
        )
    return key


def load_private_key_from_pemder_data(
    key_data: Union[str, bytes], passphrase: Optional[bytes] = None
) -> RSAPrivateKey:
    """
    Load a PEM/DER-encoded RSA private key from binary or textual data.
    Both PKCS#8 and traditional PKCS#1 encodings are accepted.

    :param key_data:
        Key data to parse.
    :param passphrase:
        Key passphrase, if the key is encrypted.
    :return:
        An RSA private key.
    :raises MalformedKeyError:
        if the key cannot be parsed, or is not a sufficiently strong RSA key.
    """
    key_bytes = _as_bytes(key_data)
    load_fun = (
        serialization.load_pem_private_key
        if pem.detect(key_bytes)
        else serialization.load_der_private_key
    )
    try:
        key = load_fun(key_bytes, password=passphrase)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        # don't echo the error message, it might quote the input
        raise MalformedKeyError("Could not parse private key") from e
    return _check_rsa_key(key, 'private key')


def load_public_key_from_pemder_data(
    key_data: Union[str, bytes]
) -> RSAPublicKey:
    """
    Load a PEM/DER-encoded RSA public key from binary or textual data.
    Both SubjectPublicKeyInfo and PKCS#1 ``RSA PUBLIC KEY`` encodings are
    accepted.

    :param key_data:
        Key data to parse.
    :return:
        An RSA public key.
    :raises MalformedKeyError:
        if the key cannot be parsed, or is not a sufficiently strong RSA key.
    """
    key_bytes = _as_bytes(key_data)
    if pem.detect(key_bytes):
        try:
            type_name, _, der = pem.unarmor(key_bytes)
        except ValueError as e:
            raise MalformedKeyError(f"Could not parse public key: {e}") from e
        if type_name == 'RSA PUBLIC KEY':
            # PKCS#1 payload; wrap it to get a SubjectPublicKeyInfo
            der = _wrap_pkcs1_public_key(der)
    else:
        der = key_bytes
    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise MalformedKeyError(f"Could not parse public key: {e}") from e
    return _check_rsa_key(key, 'public key')


def _wrap_pkcs1_public_key(der: bytes) -> bytes:
    try:
        rsa_key = keys.RSAPublicKey.load(der)
        return keys.PublicKeyInfo.wrap(rsa_key, 'rsa').dump()
    except ValueError as e:
        raise MalformedKeyError(f"Could not parse public key: {e}") from e


def private_key_to_pem(private_key: RSAPrivateKey) -> str:
    """
    Encode a private key as an unencrypted PKCS#8 PEM block.
    """
    return private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode('ascii')


def public_key_to_pem(public_key: RSAPublicKey) -> str:
    """
    Encode a public key as a SubjectPublicKeyInfo PEM block.
    """
    return public_key.public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode('ascii')


def public_key_info(public_key: RSAPublicKey) -> keys.PublicKeyInfo:
    # Store the public key as a generic ASN.1 structure for more
    # "standardised" introspection (fingerprints, algorithm names).
    return keys.PublicKeyInfo.load(
        public_key.public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
