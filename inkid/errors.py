"""
Error taxonomy for inkid.

A failed signature check is not an error: ``SignedDocument.verify`` returns
``False`` for tampered documents. The exceptions below mean the operation
could not be carried out at all.
"""


class InkIdError(Exception):
    """Base class for all inkid errors."""


class KeyGenerationError(InkIdError):
    """Raised when a keypair could not be generated."""


class SerializationError(InkIdError):
    """Raised for malformed or non-round-trippable JSON or key material."""


class SigningError(InkIdError):
    """Raised when the private key or signing primitive fails."""


class VerificationError(InkIdError):
    """
    Raised when validity cannot be determined.

    Covers malformed envelopes, unsupported algorithms and keys that
    cannot be resolved.
    """
