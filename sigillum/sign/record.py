"""
The signature record embedded into signed documents.

A record is stored as an indirect dictionary of type ``/SigillumRecord``,
referenced from the trailer of the incremental update that carries it.

.. code-block:: none

    << /Type /SigillumRecord
       /Name (Alice)
       /M (D:20261016093000Z)
       /Extra (Approved)
       /DigestMethod /SHA256
       /SigMechanism <30..>
       /ContentDigest <ab..>
       /Contents <12..>
       /ByteRange [0 1234] >>

The signature in ``/Contents`` is computed over a DER-encoded
:class:`SignedPayload`, which binds the displayed fields to the digest of the
canonical range.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Tuple

from asn1crypto import algos, core
from pyhanko.pdf_utils import generic, misc
from pyhanko.pdf_utils.generic import pdf_name, pdf_string

from ..errors import CorruptSignatureLocationError, SignatureRecordError
from .algorithms import DIGEST_ALGORITHMS, SignatureMechanism, get_mechanism

__all__ = [
    'SignatureRecord',
    'SignedPayload',
    'RECORD_TYPE',
    'TRAILER_KEY',
    'read_byte_range',
    'utc_now',
    'build_signed_payload',
]

logger = logging.getLogger(__name__)

RECORD_TYPE = pdf_name('/SigillumRecord')
TRAILER_KEY = pdf_name('/SigillumRecord')


class SignedPayload(core.Sequence):
    """
    ASN.1 structure of the data covered by the signature.

    .. code-block:: none

        SignedPayload ::= SEQUENCE {
            digestAlgorithm  DigestAlgorithm,
            contentDigest    OCTET STRING,
            signedLength     INTEGER,
            signerName       UTF8String,
            signingTime      GeneralizedTime,
            extra            UTF8String
        }
    """

    _fields = [
        ('digest_algorithm', algos.DigestAlgorithm),
        ('content_digest', core.OctetString),
        ('signed_length', core.Integer),
        ('signer_name', core.UTF8String),
        ('signing_time', core.GeneralizedTime),
        ('extra', core.UTF8String),
    ]


def utc_now() -> datetime:
    """
    The current time in UTC, truncated to whole seconds.
    """
    return datetime.now(tz=timezone.utc).replace(microsecond=0)


def _get_bytes(record_dict: generic.DictionaryObject, key: str) -> bytes:
    try:
        value = record_dict[key]
        return value.original_bytes
    except KeyError:
        raise SignatureRecordError(f"Signature record lacks {key} entry")
    except (AttributeError, misc.PdfError) as e:
        raise SignatureRecordError(
            f"{key} entry in signature record is not a string"
        ) from e


def _get_text(
    record_dict: generic.DictionaryObject, key: str, default=None
) -> str:
    try:
        value = record_dict[key]
    except KeyError:
        if default is not None:
            return default
        raise SignatureRecordError(f"Signature record lacks {key} entry")
    if isinstance(value, generic.TextStringObject):
        return str(value)
    elif isinstance(value, generic.ByteStringObject):
        try:
            return value.decode('utf8')
        except UnicodeDecodeError as e:
            raise SignatureRecordError(
                f"{key} entry in signature record is not valid text"
            ) from e
    raise SignatureRecordError(
        f"{key} entry in signature record is not a string"
    )


def read_byte_range(record_dict: generic.DictionaryObject) -> int:
    """
    Read the ``/ByteRange`` entry of a signature record.

    :param record_dict:
        The record dictionary.
    :return:
        The length ``N`` of the canonical range ``[0, N)``.
    :raises CorruptSignatureLocationError:
        if the byte range is missing or is not of the form ``[0 N]``.
    """
    try:
        byte_range = record_dict['/ByteRange']
    except KeyError:
        raise CorruptSignatureLocationError(
            "Signature record lacks /ByteRange entry"
        )
    if not isinstance(byte_range, generic.ArrayObject) or len(byte_range) != 2:
        raise CorruptSignatureLocationError(
            "Signature record has a nonstandard byte range"
        )
    start, length = byte_range
    if not isinstance(start, int) or not isinstance(length, int):
        raise CorruptSignatureLocationError(
            "Byte range entries must be integers"
        )
    if start != 0:
        raise CorruptSignatureLocationError(
            "Byte range must start at the beginning of the file"
        )
    return int(length)


@dataclass(frozen=True)
class SignatureRecord:
    """
    Record of a signature on a PDF document.
    """

    signer_name: str
    """
    Name of the signer, as entered at signing time.
    """

    timestamp: datetime
    """
    Signing time, in UTC, with second precision.
    """

    signature: bytes
    """
    Raw signature value.
    """

    digest_algorithm: str
    """
    Digest algorithm used to hash the canonical range.
    """

    signature_mechanism: algos.SignedDigestAlgorithm = field(compare=False)
    """
    Signature mechanism, including its parameters.
    """

    content_digest: bytes
    """
    Digest of the canonical range.
    """

    byte_range: Tuple[int, int]
    """
    Canonical range covered by the signature, as ``(0, N)``.
    """

    extra: str = ''
    """
    Free-form text attached by the signer. Empty if not provided.
    """

    @property
    def timestamp_iso(self) -> str:
        return self.timestamp.astimezone(timezone.utc).isoformat()

    @property
    def signed_length(self) -> int:
        return self.byte_range[1]

    @property
    def mechanism(self) -> SignatureMechanism:
        return get_mechanism(self.signature_mechanism)

    def signed_payload(self) -> bytes:
        """
        Compute the DER-encoded payload that the signature is computed over.
        """
        return build_signed_payload(
            digest_algorithm=self.digest_algorithm,
            content_digest=self.content_digest,
            signed_length=self.signed_length,
            signer_name=self.signer_name,
            timestamp=self.timestamp,
            extra=self.extra,
        )

    def as_pdf_object(self) -> generic.DictionaryObject:
        """
        Render the record as a PDF dictionary.
        """
        result = generic.DictionaryObject(
            {
                pdf_name('/Type'): RECORD_TYPE,
                pdf_name('/Name'): pdf_string(self.signer_name),
                pdf_name('/M'): generic.pdf_date(self.timestamp),
                pdf_name('/DigestMethod'): pdf_name(
                    '/' + self.digest_algorithm.upper()
                ),
                pdf_name('/SigMechanism'): generic.ByteStringObject(
                    self.signature_mechanism.dump()
                ),
                pdf_name('/ContentDigest'): generic.ByteStringObject(
                    self.content_digest
                ),
                pdf_name('/Contents'): generic.ByteStringObject(
                    self.signature
                ),
                pdf_name('/ByteRange'): generic.ArrayObject(
                    map(generic.NumberObject, self.byte_range)
                ),
            }
        )
        if self.extra:
            result[pdf_name('/Extra')] = pdf_string(self.extra)
        return result

    @classmethod
    def from_pdf_object(
        cls, record_dict: generic.DictionaryObject
    ) -> 'SignatureRecord':
        """
        Read a signature record from a PDF dictionary.

        :param record_dict:
            The record dictionary.
        :return:
            A :class:`.SignatureRecord`.
        :raises SignatureRecordError:
            if the record is malformed or refers to unsupported algorithms.
        :raises CorruptSignatureLocationError:
            if the byte range is malformed.
        """
        if not isinstance(record_dict, generic.DictionaryObject):
            raise SignatureRecordError("Signature record is not a dictionary")
        if record_dict.get('/Type') != RECORD_TYPE:
            raise SignatureRecordError(
                "Signature record does not have /Type /SigillumRecord"
            )
        signer_name = _get_text(record_dict, '/Name')
        extra = _get_text(record_dict, '/Extra', default='')

        try:
            timestamp = generic.parse_pdf_date(_get_text(record_dict, '/M'))
        except (misc.PdfReadError, ValueError) as e:
            raise SignatureRecordError(
                "Could not parse signing time in signature record"
            ) from e
        if timestamp.tzinfo is None:
            raise SignatureRecordError("Signing time must include a UTC offset")

        try:
            digest_algorithm = record_dict['/DigestMethod']
        except KeyError:
            raise SignatureRecordError(
                "Signature record lacks /DigestMethod entry"
            )
        if not isinstance(digest_algorithm, generic.NameObject):
            raise SignatureRecordError("/DigestMethod must be a name")
        digest_algorithm = digest_algorithm[1:].lower()
        if digest_algorithm not in DIGEST_ALGORITHMS:
            raise SignatureRecordError(
                f"Unsupported digest algorithm '{digest_algorithm}'"
            )

        try:
            mechanism_id = algos.SignedDigestAlgorithm.load(
                _get_bytes(record_dict, '/SigMechanism')
            )
            # force a full parse
            mechanism_id.native
        except ValueError as e:
            raise SignatureRecordError(
                "Could not parse signature mechanism in signature record"
            ) from e
        mechanism = get_mechanism(mechanism_id)
        if mechanism.digest_algorithm != digest_algorithm:
            raise SignatureRecordError(
                f"Signature mechanism uses {mechanism.digest_algorithm}, "
                f"but the record declares {digest_algorithm}."
            )

        signed_length = read_byte_range(record_dict)
        return SignatureRecord(
            signer_name=signer_name,
            timestamp=timestamp.astimezone(timezone.utc),
            extra=extra,
            signature=_get_bytes(record_dict, '/Contents'),
            digest_algorithm=digest_algorithm,
            signature_mechanism=mechanism_id,
            content_digest=_get_bytes(record_dict, '/ContentDigest'),
            byte_range=(0, signed_length),
        )


def build_signed_payload(
    *,
    digest_algorithm: str,
    content_digest: bytes,
    signed_length: int,
    signer_name: str,
    timestamp: datetime,
    extra: str,
) -> bytes:
    payload = SignedPayload(
        {
            'digest_algorithm': algos.DigestAlgorithm(
                {'algorithm': digest_algorithm}
            ),
            'content_digest': content_digest,
            'signed_length': signed_length,
            'signer_name': signer_name,
            'signing_time': timestamp.astimezone(timezone.utc),
            'extra': extra,
        }
    )
    return payload.dump()
