"""EGS unit orchestration: key and CSR generation plus certificate landing.

States:
    UNPROVISIONED: No private key or CSR yet
    PROVISIONED: Holds a matching private key and CSR

Transition Table:
    (UNPROVISIONED, KEYS_GENERATED) -> PROVISIONED
    (PROVISIONED, KEYS_GENERATED) -> PROVISIONED  (rotation)
    (PROVISIONED, CERTIFICATE_INSTALLED) -> PROVISIONED

The key and CSR are replaced together, and only after both were produced.
A failed call leaves the previous state in place.
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any

from cryptography import x509
from opentelemetry import trace

from egs.crypto.backends import get_signing_backend
from egs.crypto.csr_builder import CsrBuilder
from egs.crypto.key_generator import KeyPairGenerator
from egs.crypto.pem import (
    CERTIFICATE,
    PemFormatError,
    extract_pem_block,
    load_ec_private_key,
    public_keys_match,
)
from egs.domain.models import EGSUnitInfo, EGSUnitState
from egs.domain.state_machine import StateMachine
from egs.domain.states import UnitEvent, UnitStatus
from egs.metrics import egs_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

UnitTransitions = dict[tuple[UnitStatus, UnitEvent], UnitStatus]


class CertificateInstallError(Exception):
    """Raised when an issued certificate cannot be installed on a unit."""

    pass


class EGSUnit(StateMachine[UnitStatus, UnitEvent]):
    """An e-invoicing generation unit and its cryptographic stamp material.

    Generation calls on one unit are serialized by a per-instance lock, so
    concurrent callers each see a consistent (private_key, csr) pair.
    """

    TRANSITIONS: UnitTransitions = {
        (UnitStatus.UNPROVISIONED, UnitEvent.KEYS_GENERATED): UnitStatus.PROVISIONED,
        (UnitStatus.PROVISIONED, UnitEvent.KEYS_GENERATED): UnitStatus.PROVISIONED,
        (UnitStatus.PROVISIONED, UnitEvent.CERTIFICATE_INSTALLED): UnitStatus.PROVISIONED,
    }

    def __init__(
        self,
        info: EGSUnitInfo | dict[str, Any],
        key_generator: KeyPairGenerator | None = None,
        csr_builder: CsrBuilder | None = None,
    ) -> None:
        if not isinstance(info, EGSUnitInfo):
            info = EGSUnitInfo.model_validate(info)

        if key_generator is None or csr_builder is None:
            backend = get_signing_backend()
            key_generator = key_generator or KeyPairGenerator(backend)
            csr_builder = csr_builder or CsrBuilder(backend=backend)

        self._key_generator = key_generator
        self._csr_builder = csr_builder
        self._state = EGSUnitState(info=info)
        self._lock = asyncio.Lock()

    def _get_state(self) -> UnitStatus:
        return self._state.status

    def _set_state(self, state: UnitStatus) -> None:
        self._state = replace(self._state, status=state)

    def _get_entity_id(self) -> str:
        return self._state.info.uuid

    def get(self) -> EGSUnitState:
        """Current state of the unit. The snapshot is immutable."""
        return self._state

    async def generate_new_keys_and_csr(self) -> EGSUnitState:
        """Generate a new secp256k1 key pair and a signed CSR for this unit.

        Any previously installed certificate is dropped, since it certifies
        the old key.

        Returns:
            The new state snapshot.

        Raises:
            KeyGenerationError: If key generation fails.
            CsrGenerationError: If CSR generation fails.
        """
        async with self._lock:
            with tracer.start_as_current_span("EGSUnit.generate_new_keys_and_csr") as span:
                span.set_attribute("unit_uuid", self._state.info.uuid)
                span.set_attribute("from_status", self._state.status.value)

                start_time = time.monotonic()

                private_key = await self._key_generator.generate()
                csr = await self._csr_builder.build(private_key, self._state.info)

                # No awaits from here on: the swap is atomic for other tasks
                self.transition(UnitEvent.KEYS_GENERATED)
                self._state = replace(
                    self._state,
                    private_key=private_key,
                    csr=csr,
                    certificate=None,
                )

                duration = time.monotonic() - start_time
                egs_metrics.record_provisioned(duration)

                logger.info(
                    "egs_unit_provisioned",
                    extra={
                        "unit_uuid": self._state.info.uuid,
                        "duration_seconds": duration,
                    },
                )
                return self._state

    async def install_certificate(self, certificate: str) -> EGSUnitState:
        """Install the certificate issued for this unit's current CSR.

        Returns:
            The new state snapshot.

        Raises:
            InvalidTransitionError: If the unit has no key yet.
            CertificateInstallError: If the certificate is malformed or
                certifies a different key.
        """
        async with self._lock:
            self.next_state(UnitEvent.CERTIFICATE_INSTALLED)

            try:
                certificate_pem = extract_pem_block(certificate, CERTIFICATE)
                parsed = x509.load_pem_x509_certificate(certificate_pem.encode("utf-8"))
            except (PemFormatError, ValueError) as e:
                raise CertificateInstallError(f"Invalid certificate: {e}") from e

            key = load_ec_private_key(self._state.private_key or "")
            if not public_keys_match(key, parsed.public_key()):
                raise CertificateInstallError(
                    "Certificate public key does not match the unit's private key"
                )

            self.transition(UnitEvent.CERTIFICATE_INSTALLED)
            self._state = replace(self._state, certificate=certificate_pem)

            egs_metrics.record_certificate_installed()
            logger.info(
                "certificate_installed",
                extra={
                    "unit_uuid": self._state.info.uuid,
                    "serial": format(parsed.serial_number, "x"),
                    "not_after": parsed.not_valid_after_utc.isoformat(),
                },
            )
            return self._state
