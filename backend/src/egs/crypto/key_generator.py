"""secp256k1 private key generation for EGS units."""

import logging

from opentelemetry import trace

from egs.crypto.backends import SigningBackend, get_signing_backend
from egs.crypto.pem import EC_PRIVATE_KEY, extract_pem_block, load_ec_private_key
from egs.metrics import egs_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class KeyGenerationError(Exception):
    """Raised when a private key cannot be generated or fails validation."""

    pass


class KeyPairGenerator:
    """Generates secp256k1 private keys through a signing backend.

    Output is only returned after it parses as a traditional
    ``EC PRIVATE KEY`` PEM block on secp256k1.
    """

    def __init__(self, backend: SigningBackend | None = None) -> None:
        self._backend = backend or get_signing_backend()

    @property
    def backend(self) -> SigningBackend:
        return self._backend

    async def generate(self) -> str:
        """Generate a new private key.

        Returns:
            The private key as a PEM string starting with the EC PRIVATE KEY header.

        Raises:
            KeyGenerationError: If the backend fails or its output is not a secp256k1 key.
        """
        with tracer.start_as_current_span("KeyPairGenerator.generate") as span:
            span.set_attribute("backend", self._backend.name)

            try:
                output = await self._backend.generate_private_key()
                private_key = extract_pem_block(output, EC_PRIVATE_KEY)
                load_ec_private_key(private_key)
            except Exception as e:
                egs_metrics.record_generation_failed("key")
                logger.error(
                    "key_generation_failed",
                    extra={"backend": self._backend.name, "error": str(e)},
                )
                raise KeyGenerationError(f"Failed to generate private key: {e}") from e

            egs_metrics.record_key_generated(self._backend.name)
            logger.info("private_key_generated", extra={"backend": self._backend.name})
            return private_key
