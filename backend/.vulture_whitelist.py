from backend.src.egs.crypto import __all__ as crypto_exports
from backend.src.egs.crypto.backends import NativeSigningBackend, OpenSSLSigningBackend
from backend.src.egs.crypto.staging import SecretStager
from backend.src.egs.domain.models import EGSUnitLocation
from backend.src.egs.domain.state_machine import InvalidTransitionError, StateMachine
from backend.src.egs.unit import EGSUnit
from backend.src.shared.config import Settings
from backend.src.shared.logging import logger, setup_logging
from backend.src.shared.metrics import setup_metrics
from backend.src.shared.tracing import setup_tracing

# Package exports
crypto_exports

# Pydantic Settings
Settings.model_config
Settings.APP_NAME
Settings.APP_ENV
Settings.LOG_LEVEL

# Pydantic model config / fields read via model_dump
EGSUnitLocation.model_config
EGSUnitLocation.city_subdivision
EGSUnitLocation.plot_identification
EGSUnitLocation.postal_zone

# Public API used by the enrollment workflow
EGSUnit.get
EGSUnit.install_certificate
SecretStager.run_with_staged_secret
StateMachine.can_transition
StateMachine.get_valid_events
InvalidTransitionError.entity_id
InvalidTransitionError.current_state
InvalidTransitionError.event

# Backend identifiers
NativeSigningBackend.name
OpenSSLSigningBackend.name

# Process bootstrap hooks
setup_logging
setup_metrics
setup_tracing
logger
