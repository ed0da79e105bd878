"""
jwks-to-pem: keep PEM copies of a JWKS up to date and reload their consumer.
"""

__version__ = "1.0.0"
