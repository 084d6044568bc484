"""
Kirocred CLI

Command-line interface for issuing, publishing and verifying credentials.

Usage:
    python -m kirocred_cli keygen --out issuer.json
    python -m kirocred_cli org register --key issuer.json --name "Acme University"
    python -m kirocred_cli batch issue --key issuer.json --input batch.json --out ./packages
    python -m kirocred_cli nonce
    python -m kirocred_cli sign --key holder.json --nonce <nonce>
    python -m kirocred_cli verify --package pkg.json --nonce <nonce> --signature <sig> --holder-key holder.json
    python -m kirocred_cli revoke --commitment <commitment> --batch-id 1
"""

__version__ = "0.1.0"
