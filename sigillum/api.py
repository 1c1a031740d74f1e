"""
High-level interface to the signing engine.

This module exposes the operations of the engine with plain-data
inputs and outputs (PEM text, byte buffers and JSON-friendly responses),
for use by front-ends.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from .config import SigillumConfig
from .keys.storage import KeyStorage
from .keys.store import KeyStore
from .sign.record import SignatureRecord
from .sign.signer import Signer
from .sign.validation import VerificationResult, Verifier

__all__ = [
    'SigillumEngine',
    'SignatureInfo',
    'SignPdfResponse',
    'VerifyPdfResponse',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignatureInfo:
    """
    Display fields of a signature record.
    """

    signer_name: str
    timestamp: str
    """
    ISO 8601 timestamp, in UTC.
    """

    extra: Optional[str]
    """
    Extra text, or ``None`` if the signer did not provide any.
    """

    signature: str
    """
    Hex-encoded signature value.
    """

    @classmethod
    def from_record(cls, record: SignatureRecord) -> 'SignatureInfo':
        return SignatureInfo(
            signer_name=record.signer_name,
            timestamp=record.timestamp_iso,
            extra=record.extra or None,
            signature=record.signature.hex(),
        )

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SignPdfResponse:
    signed_pdf: bytes
    signature_info: SignatureInfo

    def as_dict(self) -> dict:
        return {
            'signed_pdf': list(self.signed_pdf),
            'signature_info': self.signature_info.as_dict(),
        }


@dataclass(frozen=True)
class VerifyPdfResponse:
    is_signed: bool
    signature_info: Optional[SignatureInfo]
    message: str

    @classmethod
    def from_result(cls, result: VerificationResult) -> 'VerifyPdfResponse':
        info = None
        if result.record is not None:
            info = SignatureInfo.from_record(result.record)
        return VerifyPdfResponse(
            is_signed=result.is_signed,
            signature_info=info,
            message=result.message,
        )

    def as_dict(self) -> dict:
        info = self.signature_info
        return {
            'is_signed': self.is_signed,
            'signature_info': info.as_dict() if info is not None else None,
            'message': self.message,
        }


class SigillumEngine:
    """
    A signing engine, holding one keypair.

    :param config:
        Engine settings.
    :param key_store:
        Key store to use. If not specified, an in-memory key store is
        created; use :meth:`open` to get one backed by persistent storage.
    """

    def __init__(
        self,
        config: Optional[SigillumConfig] = None,
        key_store: Optional[KeyStore] = None,
    ):
        self.config = config = config or SigillumConfig()
        self.key_store = key_store or KeyStore(key_size=config.key_size)
        self.signer = Signer(
            self.key_store,
            digest_algorithm=config.digest_algorithm,
            prefer_pss=config.prefer_pss,
            watermark=config.watermark,
        )
        self.verifier = Verifier(self.key_store)

    @classmethod
    def open(
        cls,
        config: Optional[SigillumConfig] = None,
        storage: Optional[KeyStorage] = None,
    ) -> 'SigillumEngine':
        """
        Set up an engine with a persistent key store, loading the stored
        keypair if there is one.

        :param config:
            Engine settings.
        :param storage:
            Key storage backend. Defaults to file storage in the directory
            specified by the configuration.
        """
        config = config or SigillumConfig()
        if storage is None:
            storage = config.key_storage()
        key_store = KeyStore.open(storage, key_size=config.key_size)
        return cls(config=config, key_store=key_store)

    def generate_keypair(self) -> str:
        """
        Generate a new keypair, replacing the current one.

        :return:
            The new public key, in PEM format.
        """
        return self.key_store.generate().public_key_pem

    def import_key(self, private_pem: str, public_pem: str) -> str:
        """
        Import a keypair, replacing the current one.

        :return:
            The imported public key, in PEM format.
        """
        return self.key_store.import_keys(private_pem, public_pem).public_key_pem

    def export_key(self) -> str:
        return self.key_store.export()

    def has_key(self) -> bool:
        return self.key_store.has_key()

    def get_public_key(self) -> str:
        return self.key_store.public_key_pem()

    def sign_pdf(self, pdf_bytes, name: str, extra: str = '') -> SignPdfResponse:
        """
        Sign a PDF document.

        :param pdf_bytes:
            The document.
        :param name:
            Name of the signer.
        :param extra:
            Optional extra text to include in the signature.
        :return:
            A :class:`.SignPdfResponse`.
        """
        signed = self.signer.sign(pdf_bytes, name, extra=extra)
        return SignPdfResponse(
            signed_pdf=signed.output,
            signature_info=SignatureInfo.from_record(signed.record),
        )

    def verify_pdf(self, pdf_bytes) -> VerifyPdfResponse:
        """
        Verify a PDF document.

        :param pdf_bytes:
            The document.
        :return:
            A :class:`.VerifyPdfResponse`.
        """
        return VerifyPdfResponse.from_result(self.verifier.verify(pdf_bytes))
