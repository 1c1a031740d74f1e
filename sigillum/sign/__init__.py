"""
Signing and verification of PDF documents.
"""

from .canonical import CanonicalRange, Canonicalizer
from .record import SignatureRecord
from .signer import SignedDocument, Signer
from .validation import VerificationResult, VerificationStatus, Verifier

__all__ = [
    'CanonicalRange',
    'Canonicalizer',
    'SignatureRecord',
    'SignedDocument',
    'Signer',
    'VerificationResult',
    'VerificationStatus',
    'Verifier',
]
