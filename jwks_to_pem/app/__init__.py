"""
jwks-to-pem application.

- config: settings from flags, environment and .env
- jwks: JWKS retrieval
- keys: PEM conversion and file output
- reload: reload triggers
- runner: one fetch/write/reload pass
- cron: scheduled passes
- cli: argparse entry point
"""
