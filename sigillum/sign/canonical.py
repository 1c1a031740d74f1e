"""
Computation of the canonical range of a document.

The canonical range of a document is the byte span ``[0, N)`` that a
signature covers. For an unsigned document, that is the whole file.
For a signed document, it is everything that precedes the incremental update
carrying the signature record, which is exactly what the signer saw when it
produced the signature.
"""

import logging
import os
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Iterator, Optional

from pyhanko.pdf_utils import generic, misc
from pyhanko.pdf_utils.reader import (
    PdfFileReader,
    header_regex,
    process_data_at_eof,
)

from ..errors import (
    CorruptSignatureLocationError,
    InvalidInputError,
    SignatureRecordError,
    UnparsableDocumentError,
)
from .algorithms import compute_digest
from .record import RECORD_TYPE, TRAILER_KEY, read_byte_range

__all__ = ['CanonicalRange', 'Canonicalizer', 'read_pdf', 'as_pdf_bytes']

logger = logging.getLogger(__name__)

_READ_ERRORS = (misc.PdfError, ValueError, KeyError, IndexError, TypeError)

_PREV_ENTRY = re.compile(rb'/Prev\s+(\d+)')

# how many xref sections recover_range looks back
MAX_RECOVERY_DEPTH = 32


def as_pdf_bytes(pdf_bytes) -> bytes:
    """
    Take an immutable copy of a caller-supplied buffer.

    :raises InvalidInputError:
        if the input is not bytes-like.
    """
    if isinstance(pdf_bytes, bytes):
        return pdf_bytes
    elif isinstance(pdf_bytes, (bytearray, memoryview)):
        return bytes(pdf_bytes)
    raise InvalidInputError(
        f"PDF input must be bytes-like, not {type(pdf_bytes).__name__}"
    )


def read_pdf(pdf_bytes: bytes) -> PdfFileReader:
    """
    Open a PDF reader on a byte buffer.

    :raises UnparsableDocumentError:
        if the buffer does not contain a readable PDF file.
    """
    if not pdf_bytes:
        raise UnparsableDocumentError("Empty input is not a PDF file")
    try:
        return PdfFileReader(BytesIO(pdf_bytes), strict=False)
    except _READ_ERRORS as e:
        raise UnparsableDocumentError(f"Could not read PDF file: {e}") from e


@dataclass(frozen=True)
class CanonicalRange:
    """
    The canonical range ``[0, length)`` of a document, together with some
    information about where the signature record was found.
    """

    length: int
    """
    Length of the canonical range; the range always starts at offset zero.
    """

    total_revisions: int
    """
    Total number of revisions in the document.
    """

    record: Optional[generic.DictionaryObject] = None
    """
    The signature record dictionary, if the document carries one.
    """

    record_ref: Optional[generic.Reference] = None
    """
    Reference to the signature record, if the document carries one.
    """

    signed_revision: Optional[int] = None
    """
    The revision that introduced the signature record, the oldest revision
    being ``0``.
    """

    location_problem: Optional[str] = None
    """
    Set when the declared range lies within the file, but does not end at
    the revision boundary preceding the signing update, or when the
    revisions before it could not be parsed.
    A signer never produces such a range, so the signature cannot match.
    """

    @property
    def start(self) -> int:
        return 0

    @property
    def is_signed(self) -> bool:
        return self.record is not None

    @property
    def modified_after_signing(self) -> bool:
        """
        Whether revisions were appended after the one that carries the
        signature record.
        """
        return (
            self.signed_revision is not None
            and self.signed_revision < self.total_revisions - 1
        )

    def check_location(self):
        """
        :raises CorruptSignatureLocationError:
            if the range does not end at a revision boundary.
        """
        if self.location_problem is not None:
            raise CorruptSignatureLocationError(self.location_problem)

    def extract(self, pdf_bytes: bytes) -> bytes:
        return pdf_bytes[: self.length]

    def digest(self, pdf_bytes: bytes, algorithm: str) -> bytes:
        """
        Hash the canonical range of a document.

        :param pdf_bytes:
            The document the range was computed on.
        :param algorithm:
            Digest algorithm name.
        :return:
            The digest value.
        """
        return compute_digest(algorithm, memoryview(pdf_bytes)[: self.length])


class Canonicalizer:
    """
    Determines the canonical range of PDF documents.
    """

    def compute_range(
        self, pdf_bytes: bytes, reader: Optional[PdfFileReader] = None
    ) -> CanonicalRange:
        """
        Compute the canonical range of a document.

        :param pdf_bytes:
            The document.
        :param reader:
            A reader already opened on ``pdf_bytes``, if available.
        :return:
            A :class:`.CanonicalRange`. If the declared range does not end
            exactly at a revision boundary, its
            :attr:`~.CanonicalRange.location_problem` is set.
        :raises UnparsableDocumentError:
            if the document cannot be parsed.
        :raises CorruptSignatureLocationError:
            if the signature record declares a range that is malformed or
            out of bounds.
        :raises SignatureRecordError:
            if the trailer points to something that is not a signature
            record.
        """
        if reader is None:
            reader = read_pdf(pdf_bytes)
        total_revisions = reader.xrefs.total_revisions
        try:
            record_obj = reader.trailer.raw_get(TRAILER_KEY)
        except KeyError:
            logger.debug("No signature record in trailer; covering entire file")
            return CanonicalRange(
                length=len(pdf_bytes), total_revisions=total_revisions
            )

        record_ref, record, signed_revision = _resolve_record(
            reader, record_obj
        )
        length = _read_length(record, pdf_bytes)
        problem = self._check_revision_boundary(
            reader, pdf_bytes, length, signed_revision
        )
        if problem is not None:
            logger.warning(f"Signature record {record_ref}: {problem}")
        result = CanonicalRange(
            length=length,
            total_revisions=total_revisions,
            record=record,
            record_ref=record_ref,
            signed_revision=signed_revision,
            location_problem=problem,
        )
        logger.debug(
            f"Signature record {record_ref} introduced in revision "
            f"{signed_revision} of {total_revisions}; canonical range is "
            f"[0, {length})"
        )
        return result

    def recover_range(
        self, pdf_bytes: bytes, problem: str
    ) -> Optional[CanonicalRange]:
        """
        Locate the signature record of a document that cannot be read in
        full, by only looking at its most recent cross-reference sections.

        :param pdf_bytes:
            The document.
        :param problem:
            Description of the read failure.
        :return:
            A :class:`.CanonicalRange` with its
            :attr:`~.CanonicalRange.location_problem` set, or ``None`` if no
            signature record could be found this way.
        :raises CorruptSignatureLocationError:
            if the signature record declares a range that is malformed or
            out of bounds.
        :raises SignatureRecordError:
            if the trailer points to something that is not a signature
            record.
        """
        for reader in _recent_revision_readers(pdf_bytes):
            try:
                record_obj = reader.trailer.raw_get(TRAILER_KEY)
            except KeyError:
                return None
            if not isinstance(record_obj, generic.IndirectObject):
                return None
            try:
                reader.xrefs.get_introducing_revision(record_obj.reference)
            except KeyError:
                # the record predates the sections we looked at
                continue
            record_ref, record, signed_revision = _resolve_record(
                reader, record_obj
            )
            length = _read_length(record, pdf_bytes)
            logger.warning(
                f"Recovered signature record {record_ref} from a damaged "
                f"document: {problem}"
            )
            return CanonicalRange(
                length=length,
                total_revisions=reader.xrefs.total_revisions,
                record=record,
                record_ref=record_ref,
                signed_revision=signed_revision,
                location_problem=problem,
            )
        return None

    @staticmethod
    def _check_revision_boundary(
        reader: PdfFileReader, pdf_bytes: bytes, length: int, signed_rev: int
    ) -> Optional[str]:
        if signed_rev == 0:
            return "Signature record must be added in an incremental update"
        xref_cache = reader.xrefs
        # The canonical range must end with the startxref pointer and EOF
        # marker of the revision preceding the signing update...
        stream = BytesIO(pdf_bytes)
        stream.seek(length, os.SEEK_SET)
        try:
            startxref = process_data_at_eof(stream)
        except (misc.PdfReadError, ValueError):
            return "Byte range does not end at the end of a revision"
        expected = xref_cache.get_startxref_for_revision(signed_rev - 1)
        if startxref != expected:
            return (
                f"Byte range ends at a revision with startxref {startxref}, "
                f"expected {expected}"
            )
        # ... and cover the xref sections of all those revisions
        for revision in range(signed_rev):
            xref_meta = xref_cache.get_xref_container_info(revision)
            if xref_meta.end_location > length:
                return (
                    f"Cross-reference section of revision {revision} extends "
                    f"beyond the byte range"
                )
        return None


def _resolve_record(reader: PdfFileReader, record_obj):
    if not isinstance(record_obj, generic.IndirectObject):
        raise SignatureRecordError(
            "Signature record must be an indirect object"
        )
    record_ref = record_obj.reference
    try:
        record = record_obj.get_object()
        signed_revision = reader.xrefs.get_introducing_revision(record_ref)
    except KeyError as e:
        raise SignatureRecordError(
            f"Signature record {record_ref} is not present in the file"
        ) from e
    except misc.PdfError as e:
        raise SignatureRecordError(
            f"Could not read signature record: {e}"
        ) from e
    if not isinstance(record, generic.DictionaryObject):
        raise SignatureRecordError("Signature record is not a dictionary")
    if record.get('/Type') != RECORD_TYPE:
        raise SignatureRecordError(
            "Signature record does not have /Type /SigillumRecord"
        )
    return record_ref, record, signed_revision


def _read_length(record: generic.DictionaryObject, pdf_bytes: bytes) -> int:
    length = read_byte_range(record)
    if not (0 < length <= len(pdf_bytes)):
        raise CorruptSignatureLocationError(
            f"Byte range length {length} is out of bounds for a file of "
            f"{len(pdf_bytes)} bytes"
        )
    return length


def _recent_revision_readers(pdf_bytes: bytes) -> Iterator[PdfFileReader]:
    # Yield readers that see the newest xref section, then the newest two,
    # and so on. The /Prev entry of the oldest section in view is blanked
    # out, so older (possibly damaged) sections are never parsed.
    # Byte offsets are preserved.
    if not pdf_bytes:
        return
    base = bytearray(pdf_bytes)
    header = misc.read_until_whitespace(BytesIO(pdf_bytes), maxchars=20)
    if header_regex.match(header) is None:
        base[:8] = b'%PDF-1.7'
    stream = BytesIO(pdf_bytes)
    stream.seek(-1, os.SEEK_END)
    try:
        startxref = process_data_at_eof(stream)
    except _READ_ERRORS:
        return

    for _ in range(MAX_RECOVERY_DEPTH):
        if not (0 <= startxref < len(pdf_bytes)):
            return
        prev_entry = _PREV_ENTRY.search(
            pdf_bytes, startxref, _section_dict_end(pdf_bytes, startxref)
        )
        view = bytearray(base)
        if prev_entry is not None:
            start, end = prev_entry.span()
            view[start:end] = b' ' * (end - start)
        try:
            reader = PdfFileReader(BytesIO(bytes(view)), strict=False)
        except _READ_ERRORS as e:
            logger.debug(f"Could not read xref section at {startxref}: {e}")
            return
        yield reader
        if prev_entry is None:
            return
        startxref = int(prev_entry.group(1))


def _section_dict_end(pdf_bytes: bytes, startxref: int) -> int:
    # The trailer of an xref table ends at the startxref keyword, the
    # dictionary of an xref stream at the stream keyword.
    ends = [
        ix
        for ix in (
            pdf_bytes.find(b'startxref', startxref),
            pdf_bytes.find(b'stream', startxref),
        )
        if ix != -1
    ]
    return min(ends, default=len(pdf_bytes))
