"""Cryptographic material for EGS units.

This module provides:
- secp256k1 private key generation
- ECDSA-SHA256 CSR building from an injected subject profile
- Scoped staging of secret material for the openssl backend
"""

from egs.crypto.backends import (
    NativeSigningBackend,
    OpenSSLSigningBackend,
    SigningBackend,
    SigningBackendError,
    get_signing_backend,
)
from egs.crypto.csr_builder import CsrBuilder, CsrGenerationError
from egs.crypto.key_generator import KeyGenerationError, KeyPairGenerator
from egs.crypto.profile import CsrProfile, default_profile, load_csr_profile
from egs.crypto.staging import SecretStager, StagingError

__all__ = [
    "CsrBuilder",
    "CsrGenerationError",
    "CsrProfile",
    "KeyGenerationError",
    "KeyPairGenerator",
    "NativeSigningBackend",
    "OpenSSLSigningBackend",
    "SecretStager",
    "SigningBackend",
    "SigningBackendError",
    "StagingError",
    "default_profile",
    "get_signing_backend",
    "load_csr_profile",
]
