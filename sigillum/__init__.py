"""
Sigillum: embed and verify RSA signatures in PDF documents.

A signature is bound to the content of a document and travels with the
file, together with a visible watermark on its first page.
"""

from .version import __version__

__all__ = ['__version__']
