"""
Exception taxonomy for the signature engine.

All errors carry a human-readable ``msg`` attribute, intended to be shown to
end users more or less as-is.
"""

__all__ = [
    'SigillumError',
    'KeyGenerationError',
    'MalformedKeyError',
    'KeyMismatchError',
    'NoKeyLoadedError',
    'InvalidInputError',
    'UnparsableDocumentError',
    'CorruptSignatureLocationError',
    'SignatureRecordError',
    'SignatureMismatchError',
]


class SigillumError(ValueError):
    """
    Base class for errors raised by the signature engine.
    """

    def __init__(self, msg: str, *args):
        self.msg = msg
        super().__init__(msg, *args)


class KeyGenerationError(SigillumError):
    """
    Error raised when a new keypair could not be generated.
    """

    pass


class MalformedKeyError(SigillumError):
    """
    Error raised when key material could not be parsed, or does not meet
    the requirements of the engine (RSA, at least 2048 bits).
    """

    pass


class KeyMismatchError(SigillumError):
    """
    Error raised when a private key does not correspond to the public key
    it was imported with.
    """

    pass


class NoKeyLoadedError(SigillumError):
    """
    Error raised when an operation requires a resident keypair, but
    none is available.
    """

    def __init__(self, msg: str = "No keypair loaded", *args):
        super().__init__(msg, *args)


class InvalidInputError(SigillumError):
    """
    Error raised on invalid caller input (empty signer name,
    non-binary document payloads, ...).
    """

    pass


class UnparsableDocumentError(SigillumError):
    """
    Error raised when the document's cross-reference structure or trailer
    cannot be read.
    """

    pass


class CorruptSignatureLocationError(SigillumError):
    """
    Error raised when an embedded signature record declares a byte range
    that does not correspond to a revision boundary within the file.
    """

    pass


class SignatureRecordError(SigillumError):
    """
    Error raised when an embedded signature record is present, but cannot be
    interpreted.
    """

    pass


class SignatureMismatchError(SigillumError):
    """
    Raised by signature mechanisms when a signature does not match the data.

    The verifier turns this into a verification result; it never escapes
    :meth:`.Verifier.verify`.
    """

    pass
