from jwks_to_pem.app.cli import run

run()
