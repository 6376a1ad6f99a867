"""
inkid Signed Documents - detached JWS signatures over payloads.

A signed payload carries its signatures inline (``payload.signatures``),
while JWS carries the payload next to its signatures. ``SignedDocument``
converts between the two shapes and signs/verifies with jwcrypto.
"""

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from cryptography import x509
from jwcrypto import jwk, jws
from jwcrypto.common import JWException, base64url_decode, base64url_encode, json_encode

from inkid import config
from inkid.document import JSONSignature, Payload, RawJSON, SignatureEntry, SignatureHeader
from inkid.errors import SerializationError, SigningError, VerificationError
from inkid.identity import Identity, IdentityManager
from inkid.keys import RSA_KEY_TYPE, RSAPublicJWK


logger = logging.getLogger(__name__)

# Algorithm used when signing, by key type
SIGNING_ALGORITHMS: Dict[str, str] = {RSA_KEY_TYPE: "RS256"}

# Algorithms accepted when verifying, by key type
VERIFICATION_ALGORITHMS: Dict[str, Sequence[str]] = {
    RSA_KEY_TYPE: ("RS256", "RS384", "RS512", "PS256", "PS384", "PS512"),
}

_BASE64URL = re.compile(r"^[A-Za-z0-9_-]*$")

TrustedKey = Union[RSAPublicJWK, jwk.JWK, Mapping[str, Any]]


def _strict_b64url_decode(value: str, what: str) -> bytes:
    if not value or not _BASE64URL.match(value):
        raise VerificationError(f"Malformed base64url in {what}")
    try:
        return base64url_decode(value)
    except (binascii.Error, ValueError) as e:
        raise VerificationError(f"Malformed base64url in {what}: {e}") from e


def _decode_protected(entry: SignatureEntry) -> Dict[str, Any]:
    try:
        protected = json.loads(_strict_b64url_decode(entry.protected, "protected header"))
    except ValueError as e:
        raise VerificationError(f"Unparseable protected header: {e}") from e
    if not isinstance(protected, dict):
        raise VerificationError("Protected header must be a JSON object")
    return protected


def _public_jwk(value: TrustedKey) -> jwk.JWK:
    """Converts a key reference to a jwcrypto key holding only public members."""
    try:
        if isinstance(value, jwk.JWK):
            value = value.export_public(as_dict=True)
        if not isinstance(value, RSAPublicJWK):
            value = RSAPublicJWK.from_dict(value)
        return value.to_jwk()
    except (SerializationError, JWException) as e:
        raise VerificationError(f"Unusable verification key: {e}") from e


def _key_from_chain(chain: Sequence[str]) -> jwk.JWK:
    """Reads the public key of the leaf certificate. The chain itself is not validated."""
    try:
        der = base64.b64decode(chain[0], validate=True)
        certificate = x509.load_der_x509_certificate(der)
        key = jwk.JWK.from_pyca(certificate.public_key())
    except (binascii.Error, ValueError, TypeError, JWException) as e:
        raise VerificationError(f"Could not read key from x5c certificate: {e}") from e
    return _public_jwk(key)


class SignedDocument:
    """
    Signs and verifies a payload with JWS JSON signatures.

    Example:
        >>> identity = IdentityManager().create()
        >>> document = SignedDocument(Payload.from_json(raw))
        >>> document.sign(identity)
        >>> document.verify()
        True
        >>> document.payload.id = "1"
        >>> document.verify()
        False
    """

    def __init__(self, payload: Payload):
        self.payload = payload

    # =========================================================================
    # Shape transformation
    # =========================================================================

    def to_envelope(self) -> JSONSignature:
        """
        Builds the JWS envelope: base64url payload bytes (without
        ``signatures``) next to the payload's existing signatures.
        """
        payload_b64 = base64url_encode(self.payload.signing_bytes())
        return JSONSignature(payload=payload_b64, signatures=list(self.payload.signatures))

    @classmethod
    def from_envelope(cls, envelope: Union[JSONSignature, RawJSON, Mapping[str, Any]]) -> "SignedDocument":
        """
        Rebuilds a payload with embedded signatures from a JWS envelope.

        Raises:
            VerificationError: If the envelope payload is not valid base64url.
            SerializationError: If the envelope or the decoded payload is malformed.
        """
        if isinstance(envelope, (str, bytes, bytearray)):
            envelope = JSONSignature.from_json(envelope)
        elif not isinstance(envelope, JSONSignature):
            envelope = JSONSignature.from_dict(envelope)

        raw = _strict_b64url_decode(envelope.payload, "envelope payload")
        payload = Payload.from_json(raw)
        if payload.signatures:
            raise SerializationError("Envelope payload must not contain its own signatures")
        payload.signatures = list(envelope.signatures)
        if payload.signing_bytes() != raw:
            logger.warning("Envelope payload is not in canonical form; its signatures will not verify")
        return cls(payload)

    @classmethod
    def from_json(cls, raw: RawJSON) -> "SignedDocument":
        """Parses a payload with embedded signatures."""
        return cls(Payload.from_json(raw))

    def to_json(self) -> bytes:
        return self.payload.to_json()

    # =========================================================================
    # Signing
    # =========================================================================

    def sign(
        self,
        identity: Identity,
        embed_public_key: Optional[bool] = None,
        chain: Optional[Sequence[str]] = None,
    ) -> Payload:
        """
        Signs the payload and appends the signature to ``payload.signatures``.

        Args:
            identity: The signing identity.
            embed_public_key: Put the public JWK in the signature header
                (default: ``config.EMBED_PUBLIC_KEY``).
            chain: Optional x5c certificate chain (base64 DER, leaf first).

        Returns:
            The payload, now carrying the new signature.

        Raises:
            SerializationError: If the payload cannot be serialized.
            SigningError: If the key or the signing primitive fails.
        """
        embed = config.EMBED_PUBLIC_KEY if embed_public_key is None else embed_public_key
        payload_bytes = self.payload.signing_bytes()

        alg = SIGNING_ALGORITHMS.get(identity.private_key.kty)
        if alg is None:
            raise SigningError(f"No signing algorithm for key type '{identity.private_key.kty}'")

        protected = {"alg": alg, "kid": identity.id}
        header: Dict[str, Any] = {}
        if embed:
            header["jwk"] = identity.public_key.to_dict()
        if chain:
            header["x5c"] = list(chain)

        try:
            token = jws.JWS(payload_bytes)
            token.add_signature(
                identity.signing_key(),
                None,
                json_encode(protected),
                json_encode(header) if header else None,
            )
            signed = json.loads(token.serialize())
        except (SerializationError, JWException, ValueError, TypeError) as e:
            raise SigningError(f"Could not sign payload {self.payload.id!r}: {e}") from e

        entry = SignatureEntry(
            header=SignatureHeader.from_dict(signed.get("header")),
            signature=signed["signature"],
            protected=signed["protected"],
        )
        self.payload.signatures.append(entry)
        logger.debug(f"Signed payload {self.payload.id!r} as {identity.id} ({alg})")
        return self.payload

    # =========================================================================
    # Verification
    # =========================================================================

    def verify(self, trusted_keys: Optional[Mapping[str, TrustedKey]] = None) -> bool:
        """
        Verifies every signature against the payload's current content.

        Keys are resolved from the embedded ``jwk``, then the leaf of
        ``x5c``, then ``trusted_keys`` by the protected ``kid``.

        Args:
            trusted_keys: Optional mapping of key id to public key.

        Returns:
            True only if all signatures verify; False if any does not.

        Raises:
            VerificationError: If there are no signatures, or a signature is
                malformed, uses an unsupported algorithm, or has no usable key.
        """
        envelope = self.to_envelope()
        if not envelope.signatures:
            raise VerificationError("Document has no signatures")

        for index, entry in enumerate(envelope.signatures):
            if not self._verify_entry(envelope.payload, entry, trusted_keys or {}):
                logger.warning(f"Signature {index} on payload {self.payload.id!r} is invalid")
                return False

        logger.debug(f"All {len(envelope.signatures)} signature(s) on payload {self.payload.id!r} verified")
        return True

    def _verify_entry(
        self,
        payload_b64: str,
        entry: SignatureEntry,
        trusted_keys: Mapping[str, TrustedKey],
    ) -> bool:
        protected = _decode_protected(entry)
        _strict_b64url_decode(entry.signature, "signature")

        header = entry.header.to_dict()
        duplicates = set(protected) & set(header)
        if duplicates:
            raise VerificationError(f"Header parameters in both protected and unprotected header: {sorted(duplicates)}")

        alg = protected.get("alg", entry.header.alg)
        if not isinstance(alg, str):
            raise VerificationError("Signature declares no algorithm")

        kid = protected.get("kid")
        key = self._resolve_key(entry.header, kid, trusted_keys)
        key_type = key.get("kty")
        if alg not in VERIFICATION_ALGORITHMS.get(key_type, ()):
            raise VerificationError(f"Unsupported algorithm '{alg}' for {key_type} key")

        # A carried key must be the one the protected kid names
        if kid is not None and (entry.header.jwk is not None or entry.header.x5c):
            if IdentityManager.thumbprint(key) != kid:
                logger.warning(f"Protected kid {kid!r} does not match the carried key")
                return False

        flattened = {"payload": payload_b64, "protected": entry.protected, "signature": entry.signature}
        if header:
            flattened["header"] = header

        token = jws.JWS()
        try:
            token.deserialize(json_encode(flattened))
        except JWException as e:
            raise VerificationError(f"Malformed signature envelope: {e}") from e

        try:
            token.verify(key, alg=alg)
        except jws.InvalidJWSSignature as e:
            logger.debug(f"Signature check failed: {e}")
            return False
        return True

    @staticmethod
    def _resolve_key(
        header: SignatureHeader,
        kid: Optional[str],
        trusted_keys: Mapping[str, TrustedKey],
    ) -> jwk.JWK:
        if header.jwk is not None:
            return _public_jwk(header.jwk)
        if header.x5c:
            return _key_from_chain(header.x5c)
        if kid is not None and kid in trusted_keys:
            return _public_jwk(trusted_keys[kid])
        raise VerificationError(f"Cannot resolve a verification key (kid={kid!r})")

    def key_ids(self) -> List[Optional[str]]:
        """The protected ``kid`` of each signature, None where absent."""
        return [_decode_protected(entry).get("kid") for entry in self.payload.signatures]

    def signer_ids(self) -> List[str]:
        """
        Identity ids (thumbprints) of the keys embedded in the signatures.

        Signatures without an embedded key are skipped.
        """
        ids = []
        for entry in self.payload.signatures:
            if entry.header.jwk is None:
                continue
            try:
                ids.append(IdentityManager.thumbprint(entry.header.jwk))
            except SerializationError as e:
                raise VerificationError(f"Embedded key is malformed: {e}") from e
        return ids


@dataclass
class Instance:
    """An owning identity together with the payload it signs."""

    owner: Identity
    payload: Payload

    def set_payload_from_json(self, raw: RawJSON) -> None:
        """Replaces the payload; raises SerializationError on malformed JSON."""
        self.payload = Payload.from_json(raw)

    def sign(self, **kwargs) -> Payload:
        return SignedDocument(self.payload).sign(self.owner, **kwargs)

    def verify(self, trusted_keys: Optional[Mapping[str, TrustedKey]] = None) -> bool:
        """
        Verifies the payload and that the owner is among its signers.

        The owner's key is trusted for signatures that carry no key of
        their own.
        """
        if trusted_keys is None:
            trusted_keys = {self.owner.id: self.owner.public_key}
        document = SignedDocument(self.payload)
        if not document.verify(trusted_keys):
            return False
        if self.owner.id not in document.key_ids():
            logger.warning(f"Payload {self.payload.id!r} is not signed by its owner {self.owner.id}")
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner.to_dict(), "payload": self.payload.to_dict()}

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), indent=config.PAYLOAD_INDENT).encode("utf-8")
