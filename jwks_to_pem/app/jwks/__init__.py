"""
JWKS client package.

Retrieves JSON Web Key Sets over HTTP and turns their entries into JWK
objects ready for PEM conversion.
"""

from .client import JWKS, JWKSClient, fetch_jwks

__all__ = ["JWKS", "JWKSClient", "fetch_jwks"]
