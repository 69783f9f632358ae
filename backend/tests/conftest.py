"""Shared fixtures for EGS unit tests."""

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from egs.crypto.backends import NativeSigningBackend, SigningBackendError
from egs.crypto.csr_builder import CsrBuilder
from egs.crypto.key_generator import KeyPairGenerator
from egs.crypto.profile import CsrTemplate, default_profile
from egs.domain.models import EGSUnitInfo

UNIT_INFO = {
    "uuid": "11111111-1111-1111-1111-111111111111",
    "CRN_number": "1010010000",
    "VAT_name": "Acme Foods",
    "VAT_number": "300000000000003",
    "location": {
        "city": "Riyadh",
        "city_subdivision": "Olaya",
        "street": "King Fahd Rd",
        "plot_identification": "1234",
        "building": "5678",
        "postal_zone": "12345",
    },
}


class ScriptedBackend(NativeSigningBackend):
    """Native backend whose outputs or failures can be overridden per call type."""

    name = "scripted"

    def __init__(
        self,
        key_output: str | None = None,
        csr_output: str | None = None,
        key_error: Exception | None = None,
        csr_error: Exception | None = None,
    ) -> None:
        self.key_output = key_output
        self.csr_output = csr_output
        self.key_error = key_error
        self.csr_error = csr_error
        self.sign_calls = 0

    async def generate_private_key(self) -> str:
        if self.key_error is not None:
            raise self.key_error
        if self.key_output is not None:
            return self.key_output
        return await super().generate_private_key()

    async def sign_request(self, private_key_pem: str, request: CsrTemplate) -> str:
        self.sign_calls += 1
        if self.csr_error is not None:
            raise self.csr_error
        if self.csr_output is not None:
            return self.csr_output
        return await super().sign_request(private_key_pem, request)


def ec_key_pem(curve: ec.EllipticCurve) -> str:
    """Traditional-format PEM for a fresh key on ``curve``."""
    key = ec.generate_private_key(curve)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def csr_pem_for(key: ec.EllipticCurvePrivateKey, algorithm: hashes.HashAlgorithm) -> str:
    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name([x509.NameAttribute(x509.oid.NameOID.COMMON_NAME, "other")]))
        .sign(key, algorithm)
    )
    return csr.public_bytes(serialization.Encoding.PEM).decode("utf-8")


@pytest.fixture
def unit_info() -> EGSUnitInfo:
    return EGSUnitInfo.model_validate(UNIT_INFO)


@pytest.fixture
def native_backend() -> NativeSigningBackend:
    return NativeSigningBackend()


@pytest.fixture
def key_generator(native_backend) -> KeyPairGenerator:
    return KeyPairGenerator(native_backend)


@pytest.fixture
def csr_builder(native_backend) -> CsrBuilder:
    return CsrBuilder(profile=default_profile("sandbox"), backend=native_backend)


@pytest.fixture
def failing_csr_builder() -> CsrBuilder:
    """Builder whose signing step always fails."""
    backend = ScriptedBackend(csr_error=SigningBackendError("signer unavailable"))
    return CsrBuilder(profile=default_profile("sandbox"), backend=backend)
