"""
Verification of signed PDF documents.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pyhanko.pdf_utils.misc import OrderedEnum

from ..errors import (
    CorruptSignatureLocationError,
    SignatureMismatchError,
    SignatureRecordError,
    UnparsableDocumentError,
)
from ..keys.store import KeyStore
from .canonical import CanonicalRange, Canonicalizer, as_pdf_bytes, read_pdf
from .record import SignatureRecord

__all__ = ['Verifier', 'VerificationResult', 'VerificationStatus']

logger = logging.getLogger(__name__)


class VerificationStatus(OrderedEnum):
    """
    Outcome of a verification, ordered from worst to best.
    """

    NOT_SIGNED = 0
    CORRUPT = 1
    MISMATCH = 2
    MODIFIED = 3
    VALID = 4

    @property
    def message(self) -> str:
        return _STATUS_MESSAGES[self]


_STATUS_MESSAGES = {
    VerificationStatus.NOT_SIGNED: 'not signed',
    VerificationStatus.CORRUPT: 'signature record corrupt',
    VerificationStatus.MISMATCH: 'signature does not match content',
    VerificationStatus.MODIFIED: 'document modified after signing',
    VerificationStatus.VALID: 'valid',
}


@dataclass(frozen=True)
class VerificationResult:
    """
    Result of verifying a document.
    """

    status: VerificationStatus
    """
    Overall verification status.
    """

    record: Optional[SignatureRecord] = None
    """
    The signature record, if one could be read from the document.
    """

    details: Optional[str] = None
    """
    Diagnostic information about the failure, if any.
    """

    @property
    def is_signed(self) -> bool:
        """
        ``True`` if and only if the document carries a valid signature
        that covers all of its content.
        """
        return self.status == VerificationStatus.VALID

    @property
    def message(self) -> str:
        return self.status.message


class Verifier:
    """
    Verifies signatures made with the keypair held by a key store.

    :param key_store:
        The key store holding the public key to verify against.
    :param canonicalizer:
        Canonicalizer to use.
    """

    def __init__(
        self,
        key_store: KeyStore,
        canonicalizer: Optional[Canonicalizer] = None,
    ):
        self.key_store = key_store
        self.canonicalizer = canonicalizer or Canonicalizer()

    def verify(self, pdf_bytes) -> VerificationResult:
        """
        Verify the signature on a PDF document.

        :param pdf_bytes:
            The document to verify. The buffer is not modified.
        :return:
            A :class:`.VerificationResult`.
        :raises UnparsableDocumentError:
            if the input is not a PDF file.
        :raises NoKeyLoadedError:
            if the document carries a signature record, but there is no key
            to verify it against.
        """
        pdf_bytes = as_pdf_bytes(pdf_bytes)
        try:
            canonical = self._compute_range(pdf_bytes)
            if not canonical.is_signed:
                logger.info("Document does not carry a signature record")
                return VerificationResult(VerificationStatus.NOT_SIGNED)
            record = SignatureRecord.from_pdf_object(canonical.record)
        except (SignatureRecordError, CorruptSignatureLocationError) as e:
            logger.warning(f"Signature record is corrupt: {e.msg}")
            return VerificationResult(VerificationStatus.CORRUPT, details=e.msg)

        keypair = self.key_store.current()
        status, details = self._check(pdf_bytes, canonical, record, keypair)
        logger.info(
            f"Signature by '{record.signer_name}' at {record.timestamp_iso}: "
            f"{status.message}"
        )
        return VerificationResult(status, record=record, details=details)

    def _compute_range(self, pdf_bytes: bytes) -> CanonicalRange:
        try:
            reader = read_pdf(pdf_bytes)
        except UnparsableDocumentError as e:
            # the signed revisions may be damaged; look for the record in
            # the newest ones
            canonical = self.canonicalizer.recover_range(pdf_bytes, e.msg)
            if canonical is None:
                raise
            return canonical
        return self.canonicalizer.compute_range(pdf_bytes, reader=reader)

    @staticmethod
    def _check(pdf_bytes: bytes, canonical: CanonicalRange, record, keypair):
        digest = canonical.digest(pdf_bytes, record.digest_algorithm)
        if digest != record.content_digest:
            logger.debug("Content digest does not match the signed range")
            return VerificationStatus.MISMATCH, "content digest mismatch"
        if canonical.location_problem is not None:
            return VerificationStatus.MISMATCH, canonical.location_problem
        try:
            record.mechanism.verify(
                keypair.public_key, record.signature, record.signed_payload()
            )
        except SignatureMismatchError as e:
            logger.debug(f"Signature check failed: {e.msg}")
            return VerificationStatus.MISMATCH, e.msg
        except SignatureRecordError as e:
            return VerificationStatus.CORRUPT, e.msg
        if canonical.modified_after_signing:
            return (
                VerificationStatus.MODIFIED,
                f"{canonical.total_revisions - canonical.signed_revision - 1} "
                f"revision(s) added after signing",
            )
        return VerificationStatus.VALID, None
