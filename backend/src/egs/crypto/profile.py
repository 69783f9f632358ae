"""CSR subject profiles for the cryptographic stamp certificate.

A profile maps unit identity fields onto subject RDNs, the
subjectAltName directory name, and the certificate template name
extension. Attribute names use OpenSSL short names so the native and
openssl backends encode the same OIDs.
"""

import json
import logging
import string
from dataclasses import dataclass
from pathlib import Path

from cryptography.x509.oid import NameOID, ObjectIdentifier
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from egs.domain.models import EGSUnitInfo
from egs.domain.states import EGSEnvironment
from shared.config import settings

logger = logging.getLogger(__name__)

CERTIFICATE_TEMPLATE_NAME_OID = ObjectIdentifier("1.3.6.1.4.1.311.20.2")

ATTRIBUTE_OIDS: dict[str, ObjectIdentifier] = {
    "CN": NameOID.COMMON_NAME,
    "C": NameOID.COUNTRY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "L": NameOID.LOCALITY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "SN": NameOID.SURNAME,
    "serialNumber": NameOID.SERIAL_NUMBER,
    "UID": NameOID.USER_ID,
    "title": NameOID.TITLE,
    "street": NameOID.STREET_ADDRESS,
    "postalCode": NameOID.POSTAL_CODE,
    "registeredAddress": ObjectIdentifier("2.5.4.26"),
    "businessCategory": NameOID.BUSINESS_CATEGORY,
}

TEMPLATE_NAMES: dict[EGSEnvironment, str] = {
    EGSEnvironment.PRODUCTION: "ZATCA-Code-Signing",
    EGSEnvironment.SIMULATION: "PREZATCA-Code-Signing",
    EGSEnvironment.SANDBOX: "TSTZATCA-Code-Signing",
}


class ProfileError(Exception):
    """Raised when a profile is invalid or cannot be rendered for a unit."""

    pass


class RdnTemplate(BaseModel):
    """One attribute of a distinguished name and the template for its value."""

    model_config = ConfigDict(frozen=True)

    attribute: str
    value: str


@dataclass(frozen=True)
class CsrTemplate:
    """A profile rendered for one unit, ready for a signing backend."""

    template_name: str
    subject: tuple[tuple[str, str], ...]
    alt_names: tuple[tuple[str, str], ...]


class CsrProfile(BaseModel):
    """Mapping from unit identity to CSR subject fields and extensions."""

    model_config = ConfigDict(frozen=True)

    template_name: str = Field(..., min_length=1, pattern=r"^[A-Za-z0-9 '()+,\-./:=?]+$")
    subject: list[RdnTemplate]
    alt_names: list[RdnTemplate] = Field(default_factory=list)
    parameters: dict[str, str] = Field(default_factory=dict)

    def render(self, info: EGSUnitInfo) -> CsrTemplate:
        """Resolve every value template against the unit's identity.

        Raises:
            ProfileError: On unknown attributes or placeholders, or empty values.
        """
        fields = {**self.parameters, **info.template_fields()}
        return CsrTemplate(
            template_name=self.template_name,
            subject=tuple(self._render_rdns(self.subject, fields)),
            alt_names=tuple(self._render_rdns(self.alt_names, fields)),
        )

    @staticmethod
    def _render_rdns(rdns: list[RdnTemplate], fields: dict[str, str]) -> list[tuple[str, str]]:
        rendered = []
        for rdn in rdns:
            if rdn.attribute not in ATTRIBUTE_OIDS:
                raise ProfileError(f"Unsupported subject attribute: {rdn.attribute}")
            formatter = string.Formatter()
            try:
                # Only plain field names; no attribute or index lookups
                for _, name, _, _ in formatter.parse(rdn.value):
                    if name is not None and name not in fields:
                        raise KeyError(name)
                value = formatter.vformat(rdn.value, (), fields).strip()
            except (KeyError, IndexError, AttributeError, ValueError) as e:
                raise ProfileError(
                    f"Cannot render template for {rdn.attribute}: {e}"
                ) from e
            if not value:
                raise ProfileError(f"Template for {rdn.attribute} rendered an empty value")
            rendered.append((rdn.attribute, value))
        return rendered


def default_profile(environment: EGSEnvironment | str = EGSEnvironment.SANDBOX) -> CsrProfile:
    """Build the stock profile for an enrollment environment."""
    environment = EGSEnvironment(environment)
    return CsrProfile(
        template_name=TEMPLATE_NAMES[environment],
        subject=[
            RdnTemplate(attribute="C", value="{country}"),
            RdnTemplate(attribute="OU", value="{CRN_number}"),
            RdnTemplate(attribute="O", value="{VAT_name}"),
            RdnTemplate(attribute="CN", value="{solution_name}-{model}-{uuid}"),
        ],
        alt_names=[
            RdnTemplate(attribute="SN", value="1-{solution_name}|2-{model}|3-{uuid}"),
            RdnTemplate(attribute="UID", value="{VAT_number}"),
            RdnTemplate(attribute="title", value="{invoice_type}"),
            RdnTemplate(
                attribute="registeredAddress",
                value=(
                    "{building} {street}, {plot_identification}, "
                    "{city_subdivision}, {city} {postal_zone}"
                ),
            ),
            RdnTemplate(attribute="businessCategory", value="{industry}"),
        ],
        parameters={
            "country": "SA",
            "solution_name": "EGS",
            "model": "Unit",
            "invoice_type": "1100",
            "industry": "Retail",
        },
    )


def load_csr_profile(path: str | Path) -> CsrProfile:
    """Load a profile from a JSON file.

    Raises:
        ProfileError: If the file cannot be read or does not describe a profile.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        profile = CsrProfile.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ProfileError(f"Failed to load CSR profile from {path}: {e}") from e

    logger.info(
        "csr_profile_loaded",
        extra={"path": str(path), "template_name": profile.template_name},
    )
    return profile


def get_csr_profile() -> CsrProfile:
    """Resolve the profile from settings: a JSON file if configured, else the built-in one."""
    if settings.EGS_CSR_PROFILE_PATH:
        return load_csr_profile(settings.EGS_CSR_PROFILE_PATH)
    return default_profile(settings.EGS_ENVIRONMENT)
