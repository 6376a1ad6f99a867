"""
inkid - self-sovereign identities and signed instance documents.

An identity is an RSA keypair named by the JWK Thumbprint of its public
key. Identities sign versioned JSON documents with detached JWS
signatures that anyone can verify from the embedded public key.
"""

__version__ = "0.1.0"

# Errors
from .errors import InkIdError, KeyGenerationError, SerializationError, SigningError, VerificationError

# Identity
from .keys import RSAPublicJWK, RSAPrivateJWK
from .identity import Identity, IdentityManager

# Documents
from .document import (
    AppInfo,
    JSONSignature,
    Payload,
    PermissionSet,
    Permissions,
    SignatureEntry,
    SignatureHeader,
    VersionInfo,
)
from .signing import Instance, SignedDocument


__all__ = [
    "__version__",
    # Errors
    "InkIdError",
    "KeyGenerationError",
    "SerializationError",
    "SigningError",
    "VerificationError",
    # Identity
    "RSAPublicJWK",
    "RSAPrivateJWK",
    "Identity",
    "IdentityManager",
    # Documents
    "AppInfo",
    "JSONSignature",
    "Payload",
    "PermissionSet",
    "Permissions",
    "SignatureEntry",
    "SignatureHeader",
    "VersionInfo",
    "Instance",
    "SignedDocument",
]
