"""Signing backends that produce secp256k1 keys and ECDSA-SHA256 CSRs.

NativeSigningBackend uses the ``cryptography`` library in-process and is
the default. OpenSSLSigningBackend drives the ``openssl`` binary for
hosts that must sign with the system OpenSSL; it only ever hands secret
material to the child process through a SecretStager scope.
"""

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from egs.crypto.pem import EXPECTED_CURVE
from egs.crypto.profile import ATTRIBUTE_OIDS, CERTIFICATE_TEMPLATE_NAME_OID, CsrTemplate
from egs.crypto.staging import SecretStager
from shared.config import settings

logger = logging.getLogger(__name__)


class SigningBackendError(Exception):
    """Raised when a backend cannot generate a key or sign a request."""

    pass


class SigningBackend(ABC):
    """Capability interface for key generation and CSR signing."""

    name: str

    @abstractmethod
    async def generate_private_key(self) -> str:
        """Return raw output containing a new secp256k1 key in PEM form."""
        ...

    @abstractmethod
    async def sign_request(self, private_key_pem: str, request: CsrTemplate) -> str:
        """Return raw output containing a CSR signed with ECDSA-SHA256."""
        ...


def encode_printable_string(value: str) -> bytes:
    """DER-encode an ASN.1 PrintableString."""
    data = value.encode("ascii")
    length = len(data)
    if length < 0x80:
        header = bytes([length])
    else:
        body = length.to_bytes((length.bit_length() + 7) // 8, "big")
        header = bytes([0x80 | len(body)]) + body
    return b"\x13" + header + data


def build_name(rdns: tuple[tuple[str, str], ...]) -> x509.Name:
    return x509.Name(
        [x509.NameAttribute(ATTRIBUTE_OIDS[attribute], value) for attribute, value in rdns]
    )


class NativeSigningBackend(SigningBackend):
    """In-process backend on ``cryptography``; work runs in a thread to keep the loop free."""

    name = "native"

    async def generate_private_key(self) -> str:
        return await asyncio.to_thread(self._generate_private_key)

    async def sign_request(self, private_key_pem: str, request: CsrTemplate) -> str:
        return await asyncio.to_thread(self._sign_request, private_key_pem, request)

    @staticmethod
    def _generate_private_key() -> str:
        try:
            key = ec.generate_private_key(EXPECTED_CURVE)
        except UnsupportedAlgorithm as e:
            raise SigningBackendError(f"secp256k1 is not supported by this build: {e}") from e

        return key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("utf-8")

    @staticmethod
    def _sign_request(private_key_pem: str, request: CsrTemplate) -> str:
        try:
            key = serialization.load_pem_private_key(
                private_key_pem.encode("utf-8"), password=None
            )
            if not isinstance(key, ec.EllipticCurvePrivateKey):
                raise SigningBackendError(
                    f"Expected an EC private key, got {type(key).__name__}"
                )

            builder = (
                x509.CertificateSigningRequestBuilder()
                .subject_name(build_name(request.subject))
                .add_extension(
                    x509.UnrecognizedExtension(
                        CERTIFICATE_TEMPLATE_NAME_OID,
                        encode_printable_string(request.template_name),
                    ),
                    critical=False,
                )
            )
            if request.alt_names:
                builder = builder.add_extension(
                    x509.SubjectAlternativeName(
                        [x509.DirectoryName(build_name(request.alt_names))]
                    ),
                    critical=False,
                )

            csr = builder.sign(key, hashes.SHA256())
        except SigningBackendError:
            raise
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SigningBackendError(f"Failed to sign request: {e}") from e

        return csr.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def escape_config_value(value: str) -> str:
    """Escape a value for an OpenSSL config file.

    Raises:
        SigningBackendError: If the value spans lines.
    """
    if "\n" in value or "\r" in value:
        raise SigningBackendError("Config values must not contain line breaks")
    return "".join(f"\\{char}" if char in "\\$#\"'" else char for char in value)


def _render_section(name: str, rdns: tuple[tuple[str, str], ...]) -> list[str]:
    # "N." prefixes keep repeated attributes distinct; openssl strips them
    lines = [f"[ {name} ]"]
    for index, (attribute, value) in enumerate(rdns):
        lines.append(f"{index}.{attribute} = {escape_config_value(value)}")
    return lines + [""]


def render_openssl_config(request: CsrTemplate) -> str:
    """Render the ``openssl req`` configuration for a rendered profile."""
    template_name = escape_config_value(request.template_name)
    extensions = [f"certificateTemplateName = ASN1:PRINTABLESTRING:{template_name}"]
    if request.alt_names:
        extensions.append("subjectAltName = dirName:egs_alt_names")

    lines = [
        "oid_section = egs_oids",
        "",
        "[ egs_oids ]",
        f"certificateTemplateName = {CERTIFICATE_TEMPLATE_NAME_OID.dotted_string}",
        "",
        "[ req ]",
        "prompt = no",
        "utf8 = yes",
        "string_mask = utf8only",
        "default_md = sha256",
        "distinguished_name = egs_dn",
        "req_extensions = egs_ext",
        "",
        "[ egs_ext ]",
        *extensions,
        "",
        *_render_section("egs_dn", request.subject),
    ]
    if request.alt_names:
        lines.extend(_render_section("egs_alt_names", request.alt_names))
    return "\n".join(lines)


class OpenSSLSigningBackend(SigningBackend):
    """Backend that shells out to the ``openssl`` command line tool."""

    name = "openssl"

    def __init__(
        self,
        binary: str | None = None,
        timeout: float | None = None,
        stager: SecretStager | None = None,
    ) -> None:
        self._binary = binary or settings.OPENSSL_BINARY
        self._timeout = timeout if timeout is not None else settings.OPENSSL_TIMEOUT_SECONDS
        self._stager = stager or SecretStager()

    async def generate_private_key(self) -> str:
        # Key goes to stdout, nothing touches disk
        return await self._run(["ecparam", "-name", EXPECTED_CURVE.name, "-genkey", "-noout"])

    async def sign_request(self, private_key_pem: str, request: CsrTemplate) -> str:
        config = render_openssl_config(request)
        with self._stager.stage({"key.pem": private_key_pem, "csr.cnf": config}) as paths:
            return await self._run(
                [
                    "req",
                    "-new",
                    "-sha256",
                    "-key",
                    str(paths["key.pem"]),
                    "-config",
                    str(paths["csr.cnf"]),
                ]
            )

    async def _run(self, args: list[str]) -> str:
        """Run openssl and return stdout.

        Raises:
            SigningBackendError: If the binary is missing, times out, or exits non-zero.
        """
        command = args[0]
        try:
            process = await asyncio.create_subprocess_exec(
                self._binary,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SigningBackendError(f"Cannot run {self._binary}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise SigningBackendError(
                f"openssl {command} timed out after {self._timeout} seconds"
            ) from e
        finally:
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            logger.warning(
                "openssl_command_failed",
                extra={"command": command, "returncode": process.returncode},
            )
            raise SigningBackendError(
                f"openssl {command} exited with status {process.returncode}: {message}"
            )

        return stdout.decode("utf-8", errors="replace")


def get_signing_backend(name: str | None = None) -> SigningBackend:
    """Build the backend named by ``name`` or EGS_SIGNING_BACKEND.

    Raises:
        SigningBackendError: If the name is unknown.
    """
    name = (name or settings.EGS_SIGNING_BACKEND).lower()
    if name == NativeSigningBackend.name:
        return NativeSigningBackend()
    if name == OpenSSLSigningBackend.name:
        return OpenSSLSigningBackend()
    raise SigningBackendError(f"Unknown signing backend: {name}")
