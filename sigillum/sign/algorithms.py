"""
Digest algorithms and signature mechanisms, dispatched by identifier.

Signature records store the identifiers of the algorithms used to produce
them. The registries in this module map those identifiers back to
implementations, so records keep validating after the defaults change.
Signature mechanisms are identified by an :class:`asn1crypto.algos.SignedDigestAlgorithm`
value, which is stored DER-encoded in the record.
"""

import logging
from typing import Dict, Optional

from asn1crypto import algos
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import (
    RSAPrivateKey,
    RSAPublicKey,
)

from ..errors import SignatureMismatchError, SignatureRecordError

__all__ = [
    'DIGEST_ALGORITHMS',
    'DEFAULT_DIGEST_ALGORITHM',
    'get_pyca_cryptography_hash',
    'compute_digest',
    'SignatureMechanism',
    'RSAPKCS1v15Mechanism',
    'RSAPSSMechanism',
    'register_mechanism',
    'get_mechanism',
    'select_rsa_mechanism',
]

logger = logging.getLogger(__name__)

DIGEST_ALGORITHMS = frozenset(['sha256', 'sha384', 'sha512'])
DEFAULT_DIGEST_ALGORITHM = 'sha256'


def get_pyca_cryptography_hash(algorithm: str) -> hashes.HashAlgorithm:
    algorithm = algorithm.lower()
    if algorithm not in DIGEST_ALGORITHMS:
        raise SignatureRecordError(
            f"Unsupported digest algorithm '{algorithm}'"
        )
    return getattr(hashes, algorithm.upper())()


def compute_digest(algorithm: str, *chunks) -> bytes:
    """
    Hash a number of byte chunks with the given digest algorithm.
    """
    h = hashes.Hash(get_pyca_cryptography_hash(algorithm))
    for chunk in chunks:
        h.update(chunk)
    return h.finalize()


class SignatureMechanism:
    """
    A signature mechanism, identified by a signed digest algorithm.

    Subclasses implement :meth:`sign` and :meth:`verify` for one value of
    the ``algorithm`` field of :class:`~asn1crypto.algos.SignedDigestAlgorithm`.
    """

    def __init__(self, algorithm_id: algos.SignedDigestAlgorithm):
        self.algorithm_id = algorithm_id

    @classmethod
    def from_algorithm_id(
        cls, algorithm_id: algos.SignedDigestAlgorithm
    ) -> 'SignatureMechanism':
        return cls(algorithm_id)

    @property
    def digest_algorithm(self) -> str:
        return self.algorithm_id.hash_algo

    def sign(self, private_key: RSAPrivateKey, data: bytes) -> bytes:
        raise NotImplementedError

    def verify(self, public_key: RSAPublicKey, signature: bytes, data: bytes):
        """
        Verify a signature.

        :raises SignatureMismatchError:
            if the signature does not match.
        """
        raise NotImplementedError


class RSAPKCS1v15Mechanism(SignatureMechanism):
    """
    RSA signatures with PKCS#1 v1.5 padding (``sha256_rsa`` and friends).
    """

    @classmethod
    def for_digest(cls, digest_algorithm: str) -> 'RSAPKCS1v15Mechanism':
        get_pyca_cryptography_hash(digest_algorithm)
        algo_id = algos.SignedDigestAlgorithm(
            {'algorithm': f'{digest_algorithm.lower()}_rsa'}
        )
        return cls(algo_id)

    def sign(self, private_key: RSAPrivateKey, data: bytes) -> bytes:
        md = get_pyca_cryptography_hash(self.digest_algorithm)
        return private_key.sign(data, padding.PKCS1v15(), md)

    def verify(self, public_key: RSAPublicKey, signature: bytes, data: bytes):
        md = get_pyca_cryptography_hash(self.digest_algorithm)
        try:
            public_key.verify(signature, data, padding.PKCS1v15(), md)
        except (InvalidSignature, ValueError) as e:
            raise SignatureMismatchError(
                "RSA PKCS#1 v1.5 signature does not match"
            ) from e


class RSAPSSMechanism(SignatureMechanism):
    """
    RSASSA-PSS signatures, with MGF1 and explicit parameters.
    """

    @classmethod
    def from_algorithm_id(
        cls, algorithm_id: algos.SignedDigestAlgorithm
    ) -> 'RSAPSSMechanism':
        mechanism = cls(algorithm_id)
        # parse the parameters up front
        try:
            mechanism._pss_padding()
        except SignatureRecordError:
            raise
        except (TypeError, KeyError, ValueError) as e:
            raise SignatureRecordError(
                f"Could not process RSASSA-PSS parameters: {e}"
            ) from e
        return mechanism

    @classmethod
    def for_digest(
        cls, digest_algorithm: str, public_key: RSAPublicKey
    ) -> 'RSAPSSMechanism':
        """
        Figure out the optimal RSASSA-PSS parameters for a given key.

        :param digest_algorithm:
            The digest algorithm to use.
        :param public_key:
            The signer's public key; determines the maximal salt length.
        """
        digest_algorithm = digest_algorithm.lower()
        md = get_pyca_cryptography_hash(digest_algorithm)
        salt_len = padding.calculate_max_pss_salt_length(public_key, md)
        params = algos.RSASSAPSSParams(
            {
                'hash_algorithm': algos.DigestAlgorithm(
                    {'algorithm': digest_algorithm}
                ),
                'mask_gen_algorithm': algos.MaskGenAlgorithm(
                    {
                        'algorithm': 'mgf1',
                        'parameters': algos.DigestAlgorithm(
                            {'algorithm': digest_algorithm}
                        ),
                    }
                ),
                'salt_length': salt_len,
            }
        )
        algo_id = algos.SignedDigestAlgorithm(
            {'algorithm': 'rsassa_pss', 'parameters': params}
        )
        return cls(algo_id)

    def _pss_padding(self):
        params: algos.RSASSAPSSParams = self.algorithm_id['parameters']
        md_name = params['hash_algorithm']['algorithm'].native
        mga: algos.MaskGenAlgorithm = params['mask_gen_algorithm']
        if mga['algorithm'].native != 'mgf1':
            raise SignatureRecordError("Only MGF1 is supported")
        mgf_md_name = mga['parameters']['algorithm'].native
        if mgf_md_name != md_name:
            logger.warning(
                f"Message digest for MGF1 is {mgf_md_name}, and the one used "
                f"for signing is {md_name}."
            )
        salt_len: int = params['salt_length'].native
        pss_padding = padding.PSS(
            mgf=padding.MGF1(algorithm=get_pyca_cryptography_hash(mgf_md_name)),
            salt_length=salt_len,
        )
        return pss_padding, get_pyca_cryptography_hash(md_name)

    def sign(self, private_key: RSAPrivateKey, data: bytes) -> bytes:
        pss_padding, md = self._pss_padding()
        return private_key.sign(data, pss_padding, md)

    def verify(self, public_key: RSAPublicKey, signature: bytes, data: bytes):
        pss_padding, md = self._pss_padding()
        try:
            public_key.verify(signature, data, pss_padding, md)
        except (InvalidSignature, ValueError) as e:
            raise SignatureMismatchError(
                "RSASSA-PSS signature does not match"
            ) from e


_MECHANISMS: Dict[str, type] = {}


def register_mechanism(algorithm_name: str, mechanism_cls: type):
    """
    Register a signature mechanism implementation for a signed digest
    algorithm name (as understood by :mod:`asn1crypto`).
    """
    _MECHANISMS[algorithm_name] = mechanism_cls


for _md in DIGEST_ALGORITHMS:
    register_mechanism(f'{_md}_rsa', RSAPKCS1v15Mechanism)
register_mechanism('rsassa_pss', RSAPSSMechanism)


def get_mechanism(
    algorithm_id: algos.SignedDigestAlgorithm,
) -> SignatureMechanism:
    """
    Look up the mechanism implementation for a signed digest algorithm.

    :raises SignatureRecordError:
        if the algorithm is unknown or its parameters cannot be processed.
    """
    try:
        algo_name = algorithm_id['algorithm'].native
        mechanism_cls = _MECHANISMS[algo_name]
        mechanism = mechanism_cls.from_algorithm_id(algorithm_id)
        # force parameter parsing, so bad parameters are caught up front
        md = mechanism.digest_algorithm
    except SignatureRecordError:
        raise
    except KeyError as e:
        raise SignatureRecordError(
            f"Unsupported signature mechanism {e}"
        ) from e
    except ValueError as e:
        raise SignatureRecordError(
            f"Could not process signature mechanism: {e}"
        ) from e
    if md not in DIGEST_ALGORITHMS:
        raise SignatureRecordError(
            f"Unsupported digest algorithm '{md}' in signature mechanism"
        )
    return mechanism


def select_rsa_mechanism(
    public_key: RSAPublicKey,
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM,
    prefer_pss: bool = True,
    algorithm_name: Optional[str] = None,
) -> SignatureMechanism:
    """
    Select a signature mechanism for signing with an RSA key.

    :param public_key:
        The signer's public key.
    :param digest_algorithm:
        Digest algorithm to use.
    :param prefer_pss:
        Use RSASSA-PSS rather than PKCS#1 v1.5.
    :param algorithm_name:
        Explicit signed digest algorithm name; overrides ``prefer_pss``.
    """
    if algorithm_name is None:
        algorithm_name = (
            'rsassa_pss' if prefer_pss else f'{digest_algorithm.lower()}_rsa'
        )
    if algorithm_name == 'rsassa_pss':
        return RSAPSSMechanism.for_digest(digest_algorithm, public_key)
    elif algorithm_name.endswith('_rsa'):
        md = algorithm_name[:-4]
        if md != digest_algorithm.lower():
            raise SignatureRecordError(
                f"Signature mechanism '{algorithm_name}' does not agree with "
                f"digest algorithm '{digest_algorithm}'."
            )
        return RSAPKCS1v15Mechanism.for_digest(md)
    raise SignatureRecordError(
        f"Unsupported signature mechanism '{algorithm_name}'"
    )
