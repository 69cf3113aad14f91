"""
dcc_verifier — EU/UK Digital COVID Certificate verifier.

Decodes scanned "HC1:" QR text (base45 → zlib → COSE_Sign1 → CBOR),
builds a typed certificate, checks its ECDSA signature against a local
key store and evaluates it against the validity rules.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
