"""
Unit tests for writing a key set to pattern-named files.
"""

import io
import os

import pytest
from unittest.mock import patch

from jwks_to_pem.app.keys.jwk import JWK, write_atomic
from jwks_to_pem.app.keys.writer import compile_pattern, resolve_output, write_keys
from shared.errors import (
    KeyProcessingError,
    KeyWriteError,
    NotECPublicKeyError,
    PatternError,
    UnsupportedAlgorithmError,
)
from shared.test_helpers import create_rsa_jwk, public_pem


@pytest.fixture
def keys(rsa_key, ec_key):
    """An RSA and an EC key."""
    return [JWK(rsa_key[0]), JWK(ec_key[0])]


class TestCompilePattern:
    """Test cases for pattern parsing."""

    def test_valid_pattern(self):
        """Well formed patterns compile."""
        template = compile_pattern("{{ key_id }}.pem")

        assert template.render(key_id="abc") == "abc.pem"

    def test_invalid_pattern(self):
        """Syntax errors raise PatternError."""
        with pytest.raises(PatternError) as exc_info:
            compile_pattern("{{ key_id .pem")

        assert exc_info.value.code == "PATTERN_ERROR"


class TestResolveOutput:
    """Test cases for output path resolution."""

    def test_plain_name(self, output_dir):
        assert resolve_output(output_dir, "a.pem") == (output_dir / "a.pem").resolve()

    def test_subdirectory(self, output_dir):
        assert resolve_output(output_dir, "RS256/a.pem") == (output_dir / "RS256" / "a.pem").resolve()

    @pytest.mark.parametrize("name", ["", "../a.pem", "/etc/a.pem", "sub/../../a.pem", "."])
    def test_rejected_names(self, output_dir, name):
        with pytest.raises(ValueError):
            resolve_output(output_dir, name)


class TestWriteKeys:
    """Test cases for write_keys."""

    def test_writes_all_keys(self, keys, output_dir, rsa_key, ec_key):
        """Each key is written to a file named from its kid."""
        result = write_keys(keys, "{{ key_id }}.pem", str(output_dir))

        assert result.changed is True
        assert result.errors == []
        assert sorted(p.name for p in result.written) == ["ec-key-1.pem", "rsa-key-1.pem"]
        assert (output_dir / "rsa-key-1.pem").read_bytes() == public_pem(rsa_key[1])
        assert (output_dir / "ec-key-1.pem").read_bytes() == public_pem(ec_key[1])

    def test_second_run_is_unchanged(self, keys, output_dir):
        """Writing the same keys again reports no change."""
        write_keys(keys, "{{ key_id }}.pem", str(output_dir))

        result = write_keys(keys, "{{ key_id }}.pem", str(output_dir))

        assert result.changed is False
        assert result.written == []

    def test_only_modified_key_is_rewritten(self, keys, output_dir):
        """A key whose file was altered is rewritten on its own."""
        write_keys(keys, "{{ key_id }}.pem", str(output_dir))
        (output_dir / "ec-key-1.pem").write_text("stale")

        result = write_keys(keys, "{{ key_id }}.pem", str(output_dir))

        assert result.changed is True
        assert [p.name for p in result.written] == ["ec-key-1.pem"]

    def test_pattern_variables(self, keys, output_dir):
        """index, algorithm and key_type are available to patterns."""
        result = write_keys(keys, "{{ index }}-{{ algorithm }}-{{ key_type | lower }}.pem", str(output_dir))

        assert result.errors == []
        assert (output_dir / "0-RS256-rsa.pem").exists()
        assert (output_dir / "1-ES256-ec.pem").exists()

    def test_creates_output_directory(self, keys, tmp_path):
        """A missing output directory is created."""
        target = tmp_path / "new" / "keys"

        result = write_keys(keys, "{{ key_id }}.pem", str(target))

        assert result.changed is True
        assert (target / "rsa-key-1.pem").exists()

    def test_unknown_variable_is_recorded(self, keys, output_dir):
        """Undefined pattern variables fail per key."""
        result = write_keys(keys, "{{ KeyID }}.pem", str(output_dir))

        assert result.changed is False
        assert len(result.errors) == 2
        assert all(isinstance(e, KeyWriteError) for e in result.errors)
        assert "template execution failed (KID: rsa-key-1)" in str(result.errors[0])

    def test_unsupported_key_does_not_stop_others(self, rsa_key, output_dir):
        """A bad key is recorded while the remaining keys are written."""
        keys = [JWK({"kty": "oct", "kid": "hmac", "alg": "HS256"}), JWK(rsa_key[0])]

        result = write_keys(keys, "{{ key_id }}.pem", str(output_dir))

        assert result.changed is True
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], UnsupportedAlgorithmError)
        assert (output_dir / "rsa-key-1.pem").exists()

        with pytest.raises(KeyProcessingError) as exc_info:
            result.raise_for_errors()

        assert exc_info.value.errors == result.errors

    def test_duplicate_names(self, output_dir):
        """Two keys rendering to one file name fail for the later key."""
        first, _ = create_rsa_jwk(kid="same")
        second, _ = create_rsa_jwk(kid="same")

        result = write_keys([JWK(first), JWK(second)], "{{ key_id }}.pem", str(output_dir))

        assert len(result.written) == 1
        assert len(result.errors) == 1
        assert "duplicate output file name" in str(result.errors[0])

    def test_escaping_name_is_recorded(self, output_dir):
        """Names that leave the output directory are refused."""
        data, _ = create_rsa_jwk(kid="../../etc/evil")

        result = write_keys([JWK(data)], "{{ key_id }}.pem", str(output_dir))

        assert result.changed is False
        assert "invalid output file name" in str(result.errors[0])

    def test_no_output_prints_keys(self, keys, rsa_key, ec_key):
        """Without an output directory keys are printed and not tracked."""
        stream = io.StringIO()

        result = write_keys(keys, "{{ key_id }}.pem", "", stream=stream)

        assert result.changed is False
        assert stream.getvalue() == (public_pem(rsa_key[1]) + public_pem(ec_key[1])).decode("ascii")

    def test_invalid_pattern_raises(self, keys, output_dir):
        """Pattern syntax errors fail the whole call."""
        with pytest.raises(PatternError):
            write_keys(keys, "{% if %}", str(output_dir))

    def test_file_mode(self, keys, output_dir):
        """Files get the requested mode."""
        write_keys(keys, "{{ key_id }}.pem", str(output_dir), file_mode=0o600)

        assert (output_dir / "rsa-key-1.pem").stat().st_mode & 0o777 == 0o600

    def test_malformed_curve_does_not_stop_others(self, rsa_key, output_dir):
        """A key with a non-string curve is recorded while the rest are written."""
        bad = JWK({"kty": "EC", "kid": "bad", "alg": "ES256", "crv": ["P-256"], "x": "AA", "y": "AA"})

        result = write_keys([bad, JWK(rsa_key[0])], "{{ key_id }}.pem", str(output_dir))

        assert result.changed is True
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], NotECPublicKeyError)
        assert [p.name for p in result.written] == ["rsa-key-1.pem"]

    def test_compare_failure_is_recorded(self, keys, output_dir):
        """A target that cannot be read for comparison fails only that key."""
        (output_dir / "rsa-key-1.pem").mkdir()

        result = write_keys(keys, "{{ key_id }}.pem", str(output_dir))

        assert len(result.errors) == 1
        assert isinstance(result.errors[0], KeyWriteError)
        assert str(result.errors[0]).startswith("error comparing keys (KID: rsa-key-1)")
        assert [p.name for p in result.written] == ["ec-key-1.pem"]

    def test_write_failure_is_recorded(self, keys, output_dir):
        """A failed write is recorded and later keys are still written."""
        def failing_write(path, data, mode=0o644):
            if os.path.basename(path) == "rsa-key-1.pem":
                raise OSError("disk full")
            write_atomic(path, data, mode)

        with patch("jwks_to_pem.app.keys.jwk.write_atomic", side_effect=failing_write):
            result = write_keys(keys, "{{ key_id }}.pem", str(output_dir))

        assert len(result.errors) == 1
        assert str(result.errors[0]) == "writing key failed (KID: rsa-key-1): disk full"
        assert result.changed is True
        assert [p.name for p in result.written] == ["ec-key-1.pem"]
        assert not (output_dir / "rsa-key-1.pem").exists()
        assert (output_dir / "ec-key-1.pem").exists()
