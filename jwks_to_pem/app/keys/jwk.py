"""
Conversion of a single JSON Web Key to a PEM encoded public key.
"""

import hashlib
import os
import tempfile
from typing import Any, Dict, Mapping, Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jose.utils import base64_to_long

from shared.errors import (
    NotECPublicKeyError,
    NotRSAPublicKeyError,
    UnsupportedAlgorithmError,
)

RSA_ALGORITHMS = frozenset({"RS256", "RS384", "RS512", "PS256", "PS384", "PS512"})
EC_ALGORITHMS = frozenset({"ES256", "ES384", "ES512"})

EC_CURVES = {
    "P-256": ec.SECP256R1,
    "P-384": ec.SECP384R1,
    "P-521": ec.SECP521R1,
}

# Curve each ECDSA algorithm is defined over
EC_ALGORITHM_CURVES = {
    "ES256": "P-256",
    "ES384": "P-384",
    "ES512": "P-521",
}

PublicKey = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]

_HASH_CHUNK = 64 * 1024


class JWK:
    """A public key from a JWKS, convertible to DER and PEM."""

    def __init__(self, data: Mapping[str, Any]):
        self.data: Dict[str, Any] = dict(data)
        self._der: Optional[bytes] = None

    def __repr__(self) -> str:
        return f"JWK(kid={self.key_id!r}, alg={self.algorithm!r}, kty={self.key_type!r})"

    @property
    def key_id(self) -> str:
        return str(self.data.get("kid") or "")

    @property
    def algorithm(self) -> str:
        return str(self.data.get("alg") or "")

    @property
    def key_type(self) -> str:
        return str(self.data.get("kty") or "")

    def public_key(self) -> PublicKey:
        """Build the public key selected by ``alg`` (or ``kty`` when ``alg`` is absent)."""
        alg = self.algorithm.upper()

        if alg in RSA_ALGORITHMS or (not alg and self.key_type == "RSA"):
            return self._rsa_public_key()
        if alg in EC_ALGORITHMS or (not alg and self.key_type == "EC"):
            return self._ec_public_key(alg)

        raise UnsupportedAlgorithmError(self.key_id)

    def _rsa_public_key(self) -> rsa.RSAPublicKey:
        if self.key_type != "RSA" or "n" not in self.data or "e" not in self.data:
            raise NotRSAPublicKeyError(self.key_id)

        try:
            n = _decode_int(self.data["n"])
            e = _decode_int(self.data["e"])
            return rsa.RSAPublicNumbers(e, n).public_key()
        except (ValueError, TypeError) as exc:
            raise NotRSAPublicKeyError(self.key_id, details={"reason": str(exc)}) from exc

    def _ec_public_key(self, alg: str) -> ec.EllipticCurvePublicKey:
        if self.key_type != "EC" or "x" not in self.data or "y" not in self.data:
            raise NotECPublicKeyError(self.key_id)

        crv = self.data.get("crv") or EC_ALGORITHM_CURVES.get(alg, "")
        if not isinstance(crv, str):
            raise NotECPublicKeyError(self.key_id, details={"crv": crv})

        curve = EC_CURVES.get(crv)
        if curve is None or (alg and EC_ALGORITHM_CURVES[alg] != crv):
            raise NotECPublicKeyError(self.key_id, details={"crv": crv})

        try:
            x = _decode_int(self.data["x"])
            y = _decode_int(self.data["y"])
            return ec.EllipticCurvePublicNumbers(x, y, curve()).public_key()
        except (ValueError, TypeError) as exc:
            raise NotECPublicKeyError(self.key_id, details={"reason": str(exc)}) from exc

    def der(self) -> bytes:
        """DER encoded SubjectPublicKeyInfo."""
        if self._der is None:
            self._der = self.public_key().public_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        return self._der

    def pem(self) -> bytes:
        """PEM encoded public key."""
        key = serialization.load_der_public_key(self.der())
        return key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def changed(self, path: Union[str, os.PathLike]) -> bool:
        """Whether the file at ``path`` differs from this key's PEM encoding.

        A missing file counts as changed.
        """
        return key_changed(path, self.pem())

    def write(self, path: Union[str, os.PathLike], mode: int = 0o644) -> None:
        """Atomically replace ``path`` with this key's PEM encoding."""
        write_atomic(path, self.pem(), mode)


def _decode_int(value: Any) -> int:
    if not isinstance(value, str) or not value:
        raise ValueError("expected a base64url encoded string")
    return base64_to_long(value)


def key_changed(path: Union[str, os.PathLike], data: bytes) -> bool:
    try:
        current = _file_digest(path)
    except FileNotFoundError:
        return True
    return current != hashlib.sha256(data).digest()


def _file_digest(path: Union[str, os.PathLike]) -> bytes:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK), b""):
            digest.update(chunk)
    return digest.digest()


def write_atomic(path: Union[str, os.PathLike], data: bytes, mode: int = 0o644) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(prefix="key", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_name, mode)
        os.replace(temp_name, path)
    except BaseException:
        try:
            os.unlink(temp_name)
        except FileNotFoundError:
            pass
        raise
