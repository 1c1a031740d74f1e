"""
Signing of PDF documents.

A signature is added to a document by appending a single incremental update
that carries the signature record and the watermark. The bytes preceding the
update are exactly the bytes that were signed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from io import BytesIO
from typing import Optional

from pyhanko.pdf_utils import misc
from pyhanko.pdf_utils.incremental_writer import IncrementalPdfFileWriter

from ..errors import InvalidInputError, UnparsableDocumentError
from ..keys.store import KeyStore
from ..stamp import WatermarkRenderer
from .algorithms import (
    DEFAULT_DIGEST_ALGORITHM,
    compute_digest,
    get_pyca_cryptography_hash,
    select_rsa_mechanism,
)
from .canonical import Canonicalizer, as_pdf_bytes, read_pdf
from .record import (
    TRAILER_KEY,
    SignatureRecord,
    build_signed_payload,
    utc_now,
)

__all__ = ['Signer', 'SignedDocument']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedDocument:
    """
    Output of a signing operation.
    """

    output: bytes
    """
    The signed document.
    """

    record: SignatureRecord
    """
    The signature record embedded into the document.
    """


class Signer:
    """
    Signs PDF documents with the keypair held by a key store.

    :param key_store:
        The key store holding the signing key.
    :param digest_algorithm:
        Digest algorithm to hash the canonical range with.
    :param prefer_pss:
        Sign using RSASSA-PSS (the default) rather than PKCS#1 v1.5.
    :param watermark:
        The renderer for the visible watermark. Pass ``None`` to use the
        default.
    :param canonicalizer:
        Canonicalizer to use.
    """

    def __init__(
        self,
        key_store: KeyStore,
        digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM,
        prefer_pss: bool = True,
        watermark: Optional[WatermarkRenderer] = None,
        canonicalizer: Optional[Canonicalizer] = None,
    ):
        # fail early on unsupported digests
        get_pyca_cryptography_hash(digest_algorithm)
        self.key_store = key_store
        self.digest_algorithm = digest_algorithm.lower()
        self.prefer_pss = prefer_pss
        self.watermark = watermark or WatermarkRenderer()
        self.canonicalizer = canonicalizer or Canonicalizer()

    def sign(
        self,
        pdf_bytes,
        signer_name: str,
        extra: str = '',
        timestamp: Optional[datetime] = None,
    ) -> SignedDocument:
        """
        Sign a PDF document.

        :param pdf_bytes:
            The document to sign. The buffer is not modified.
        :param signer_name:
            Name of the signer.
        :param extra:
            Free-form text to include in the record.
        :param timestamp:
            Signing time. Defaults to the current time.
        :return:
            A :class:`.SignedDocument`.
        :raises NoKeyLoadedError:
            if there is no key to sign with.
        :raises InvalidInputError:
            if the signer name is empty, or the input is encrypted.
        :raises UnparsableDocumentError:
            if the input is not a PDF file.
        :raises CorruptSignatureLocationError:
            if the input carries a signature record that cannot be located.
        :raises SignatureRecordError:
            if the input carries a malformed signature record.
        """
        keypair = self.key_store.current()
        if not isinstance(signer_name, str) or not signer_name.strip():
            raise InvalidInputError("Signer name must not be empty")
        signer_name = signer_name.strip()
        extra = extra or ''

        pdf_bytes = as_pdf_bytes(pdf_bytes)
        reader = read_pdf(pdf_bytes)
        if reader.encrypted:
            raise InvalidInputError("Encrypted documents cannot be signed")

        canonical = self.canonicalizer.compute_range(pdf_bytes, reader=reader)
        canonical.check_location()
        if not canonical.is_signed:
            base = pdf_bytes
        elif canonical.modified_after_signing:
            logger.warning(
                "Document was modified after it was last signed; the previous "
                "signature record will be retained as ordinary content."
            )
            base = pdf_bytes
        else:
            logger.info("Replacing existing signature record")
            base = canonical.extract(pdf_bytes)

        if timestamp is None:
            timestamp = utc_now()
        else:
            timestamp = timestamp.astimezone(timezone.utc).replace(microsecond=0)
        digest_algorithm = self.digest_algorithm
        mechanism = select_rsa_mechanism(
            keypair.public_key,
            digest_algorithm=digest_algorithm,
            prefer_pss=self.prefer_pss,
        )
        content_digest = compute_digest(digest_algorithm, base)
        payload = build_signed_payload(
            digest_algorithm=digest_algorithm,
            content_digest=content_digest,
            signed_length=len(base),
            signer_name=signer_name,
            timestamp=timestamp,
            extra=extra,
        )
        signature = mechanism.sign(keypair.private_key, payload)
        record = SignatureRecord(
            signer_name=signer_name,
            timestamp=timestamp,
            extra=extra,
            signature=signature,
            digest_algorithm=digest_algorithm,
            signature_mechanism=mechanism.algorithm_id,
            content_digest=content_digest,
            byte_range=(0, len(base)),
        )
        output = self._write_update(base, record)
        logger.info(
            f"Signed document as '{signer_name}' with key "
            f"{keypair.fingerprint}; {len(base)} bytes covered"
        )
        return SignedDocument(output=output, record=record)

    def _write_update(self, base: bytes, record: SignatureRecord) -> bytes:
        try:
            w = IncrementalPdfFileWriter(BytesIO(base), strict=False)
            record_ref = w.add_object(record.as_pdf_object())
            w.set_custom_trailer_entry(TRAILER_KEY, record_ref)
            self.watermark.render(w, record)
            out = BytesIO()
            w.write(out)
        except misc.PdfError as e:
            raise UnparsableDocumentError(
                f"Could not write signed document: {e}"
            ) from e
        return out.getvalue()
