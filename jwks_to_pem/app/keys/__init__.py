"""
Key conversion and output.

- jwk: JWK to PEM conversion, change detection and atomic writes
- writer: pattern-based file naming for a whole key set
"""

from .jwk import JWK
from .writer import WriteResult, compile_pattern, write_keys

__all__ = ["JWK", "WriteResult", "compile_pattern", "write_keys"]
