"""
inkid Identity - self-certifying RSA identities.

An identity is an RSA keypair whose identifier is the JWK Thumbprint of
its public key, so anyone holding the public key can recompute it and no
registration step is needed.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from jwcrypto import jwk

from inkid import config
from inkid.errors import KeyGenerationError, SerializationError
from inkid.keys import RSA_KEY_TYPE, RSAPrivateJWK, RSAPublicJWK


logger = logging.getLogger(__name__)

# Members hashed into the thumbprint of an RSA key (RFC 7638 section 3.2)
THUMBPRINT_MEMBERS = ("e", "kty", "n")

PublicKeyLike = Union[RSAPublicJWK, RSAPrivateJWK, jwk.JWK, Mapping[str, Any]]


@dataclass(frozen=True)
class Identity:
    """
    An RSA keypair and the identifier derived from it.

    Attributes:
        id: Lowercase hex SHA-256 JWK Thumbprint of ``public_key``.
        private_key: The private JWK. Keep this secret.
        public_key: The public JWK, safe to share.
    """

    id: str
    private_key: RSAPrivateJWK
    public_key: RSAPublicJWK

    def signing_key(self) -> jwk.JWK:
        """Returns the private key as a jwcrypto key."""
        return self.private_key.to_jwk()

    def verification_key(self) -> jwk.JWK:
        """Returns the public key as a jwcrypto key."""
        return self.public_key.to_jwk()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "_jwk": self.private_key.to_dict(),
            "jwk": self.public_key.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Identity":
        """
        Rebuild an identity from its ``to_dict`` form.

        Raises:
            SerializationError: If members are missing or ``id`` does not match the key.
        """
        if not isinstance(data, Mapping) or "_jwk" not in data:
            raise SerializationError("Identity must be an object with a '_jwk' member")
        private_key = RSAPrivateJWK.from_dict(data["_jwk"])
        public_key = RSAPublicJWK.from_dict(data["jwk"]) if "jwk" in data else private_key.public()
        if (public_key.n, public_key.e) != (private_key.n, private_key.e):
            raise SerializationError("Public key does not belong to the private key")
        identity_id = IdentityManager.thumbprint(public_key)
        if data.get("id", identity_id) != identity_id:
            raise SerializationError("Identity id does not match the thumbprint of its public key")
        return cls(id=identity_id, private_key=private_key, public_key=public_key)


class IdentityManager:
    """
    Creates identities and converts their key material to interchange form.

    Example:
        >>> manager = IdentityManager()
        >>> identity = manager.create()
        >>> len(identity.id)
        64
        >>> IdentityManager.thumbprint(identity.public_key) == identity.id
        True
    """

    def __init__(self, key_size: Optional[int] = None):
        self.key_size = key_size if key_size is not None else config.RSA_KEY_SIZE

    def create(self) -> Identity:
        """
        Generates a fresh RSA keypair and derives its identifier.

        Returns:
            A new Identity.

        Raises:
            KeyGenerationError: If the key size is too small or the primitive fails.
        """
        if self.key_size < config.MIN_RSA_KEY_SIZE:
            raise KeyGenerationError(
                f"RSA key size {self.key_size} is below the minimum of {config.MIN_RSA_KEY_SIZE} bits"
            )

        try:
            key = jwk.JWK.generate(kty=RSA_KEY_TYPE, size=self.key_size)
        except Exception as e:
            raise KeyGenerationError(f"Could not generate RSA-{self.key_size} key: {e}") from e

        try:
            private_key = RSAPrivateJWK.from_jwk(key)
        except SerializationError as e:
            raise KeyGenerationError(f"Generated key could not be exported: {e}") from e

        public_key = private_key.public()
        identity = Identity(id=self.thumbprint(public_key), private_key=private_key, public_key=public_key)
        logger.debug(f"Generated RSA-{self.key_size} identity {identity.id}")
        return identity

    @staticmethod
    def thumbprint(public_key: PublicKeyLike) -> str:
        """
        Computes the JWK Thumbprint of an RSA public key as lowercase hex.

        Only ``e``, ``kty`` and ``n`` are hashed; every other member is
        ignored. The members are JSON-encoded with sorted keys and no
        whitespace, then hashed with SHA-256.

        Args:
            public_key: Public (or private) JWK record, jwcrypto key, or JWK mapping.

        Returns:
            64-character hex string.

        Raises:
            SerializationError: If a required member is missing or the key is not RSA.
        """
        if isinstance(public_key, (RSAPublicJWK, RSAPrivateJWK)):
            members = public_key.to_dict()
        elif isinstance(public_key, jwk.JWK):
            members = public_key.export_public(as_dict=True)
        elif isinstance(public_key, Mapping):
            members = public_key
        else:
            raise SerializationError(f"Cannot compute thumbprint of {type(public_key).__name__}")

        subset = {}
        for name in THUMBPRINT_MEMBERS:
            value = members.get(name)
            if not isinstance(value, str) or not value:
                raise SerializationError(f"Key is missing required thumbprint member '{name}'")
            subset[name] = value
        if subset["kty"] != RSA_KEY_TYPE:
            raise SerializationError(f"Unsupported key type '{subset['kty']}', expected RSA")

        canonical = json.dumps(subset, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    @staticmethod
    def export_private(identity: Identity) -> bytes:
        """Serializes the private key to JWK JSON bytes."""
        return json.dumps(identity.private_key.to_dict(), indent=4).encode("utf-8")

    @staticmethod
    def export_public(identity: Identity) -> bytes:
        """Serializes the public key to JWK JSON bytes."""
        return json.dumps(identity.public_key.to_dict(), indent=4).encode("utf-8")

    @staticmethod
    def load_private(private_jwk: Union[str, bytes, Mapping[str, Any]]) -> Identity:
        """
        Rebuilds an Identity from an exported private JWK.

        Raises:
            SerializationError: If the JWK is malformed or not an RSA private key.
        """
        private_key = RSAPrivateJWK.from_dict(private_jwk)
        # Reject keys jwcrypto cannot load before handing out an identity
        private_key.to_jwk()
        public_key = private_key.public()
        return Identity(id=IdentityManager.thumbprint(public_key), private_key=private_key, public_key=public_key)

    @staticmethod
    def load_public(public_jwk: Union[str, bytes, Mapping[str, Any]]) -> RSAPublicJWK:
        """Parses an exported public JWK."""
        return RSAPublicJWK.from_dict(public_jwk)
