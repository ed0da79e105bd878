"""
Shared fixtures for jwks-to-pem unit tests.
"""

import os

import pytest

from shared.test_helpers import create_ec_jwk, create_rsa_jwk


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep JWKS_* variables and stray .env files out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith("JWKS_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(scope="session")
def rsa_key():
    """RSA JWK and its private key."""
    return create_rsa_jwk(kid="rsa-key-1", alg="RS256")


@pytest.fixture(scope="session")
def ec_key():
    """EC P-256 JWK and its private key."""
    return create_ec_jwk(kid="ec-key-1", alg="ES256", crv="P-256")


@pytest.fixture
def output_dir(tmp_path):
    """Directory the keys are written to."""
    path = tmp_path / "keys"
    path.mkdir()
    return path
