"""Certificate signing request construction for EGS units.

The subject layout comes from an injected CsrProfile; the builder only
renders it, asks the backend to sign, and validates what comes back.
"""

import logging

from opentelemetry import trace

from egs.crypto.backends import SigningBackend, get_signing_backend
from egs.crypto.pem import (
    CERTIFICATE_REQUEST,
    PemFormatError,
    extract_pem_block,
    load_csr,
    load_ec_private_key,
    public_keys_match,
)
from egs.crypto.profile import CsrProfile, get_csr_profile
from egs.crypto.staging import StagingError
from egs.domain.models import EGSUnitInfo
from egs.metrics import egs_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CsrGenerationError(Exception):
    """Raised when a CSR cannot be built, signed, or validated."""

    pass


class CsrBuilder:
    """Builds ECDSA-SHA256 signed CSRs for a unit's identity.

    Checks on the returned CSR:
    - a complete CERTIFICATE REQUEST PEM block
    - a valid self-signature using SHA-256
    - the embedded public key belongs to the signing private key
    """

    def __init__(
        self,
        profile: CsrProfile | None = None,
        backend: SigningBackend | None = None,
    ) -> None:
        self._profile = profile or get_csr_profile()
        self._backend = backend or get_signing_backend()

    @property
    def profile(self) -> CsrProfile:
        return self._profile

    async def build(self, private_key: str, info: EGSUnitInfo) -> str:
        """Build and sign a CSR.

        Args:
            private_key: secp256k1 private key PEM.
            info: Identity attributes for the subject.

        Returns:
            The CSR as a PEM string starting with the CERTIFICATE REQUEST header.

        Raises:
            CsrGenerationError: On a bad key, an unrenderable profile, a
                signing failure, or output that fails validation.
        """
        with tracer.start_as_current_span("CsrBuilder.build") as span:
            span.set_attribute("backend", self._backend.name)
            span.set_attribute("unit_uuid", info.uuid)
            span.set_attribute("template_name", self._profile.template_name)

            try:
                try:
                    key = load_ec_private_key(private_key)
                except PemFormatError as e:
                    raise CsrGenerationError(f"Invalid private key: {e}") from e

                request = self._profile.render(info)
                output = await self._backend.sign_request(private_key, request)

                csr_pem = extract_pem_block(output, CERTIFICATE_REQUEST)
                csr = load_csr(csr_pem)
                if not public_keys_match(key, csr.public_key()):
                    raise CsrGenerationError(
                        "CSR public key does not match the signing private key"
                    )
            except Exception as e:
                egs_metrics.record_generation_failed("csr")
                logger.error(
                    "csr_generation_failed",
                    extra={
                        "unit_uuid": info.uuid,
                        "backend": self._backend.name,
                        "error": str(e),
                    },
                )
                # Staging failures keep their own kind
                if isinstance(e, (CsrGenerationError, StagingError)):
                    raise
                raise CsrGenerationError(f"Failed to generate CSR: {e}") from e

            egs_metrics.record_csr_generated(self._backend.name)
            logger.info(
                "csr_generated",
                extra={
                    "unit_uuid": info.uuid,
                    "backend": self._backend.name,
                    "template_name": self._profile.template_name,
                },
            )
            return csr_pem
