"""Structural validation of PEM-encoded artifacts.

Backends may surround the block we want with other output (``openssl
ecparam`` prints an ``EC PARAMETERS`` block ahead of the key), so the
block is located by its markers rather than assumed to be the whole text.
"""

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

EC_PRIVATE_KEY = "EC PRIVATE KEY"
CERTIFICATE_REQUEST = "CERTIFICATE REQUEST"
CERTIFICATE = "CERTIFICATE"

EXPECTED_CURVE = ec.SECP256K1()


class PemFormatError(Exception):
    """Raised when text does not hold a well-formed PEM block of the expected kind."""

    pass


def begin_marker(label: str) -> str:
    return f"-----BEGIN {label}-----"


def end_marker(label: str) -> str:
    return f"-----END {label}-----"


def extract_pem_block(text: str | bytes | None, label: str) -> str:
    """Return the first complete PEM block with the given label.

    Args:
        text: Raw output that should contain the block.
        label: PEM label, e.g. ``EC PRIVATE KEY``.

    Returns:
        The block from its BEGIN marker through its END marker, stripped.

    Raises:
        PemFormatError: If the header or footer is missing or out of order.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    if not text:
        raise PemFormatError(f"No {label} found: output is empty")

    begin = begin_marker(label)
    end = end_marker(label)

    start = text.find(begin)
    if start == -1:
        raise PemFormatError(f"No {label} found: missing '{begin}' header")

    stop = text.find(end, start + len(begin))
    if stop == -1:
        raise PemFormatError(f"Truncated {label}: missing '{end}' footer")

    block = text[start : stop + len(end)]
    if not block[len(begin) : -len(end)].strip():
        raise PemFormatError(f"Empty {label}: no content between markers")
    return block.strip() + "\n"


def load_ec_private_key(pem: str) -> ec.EllipticCurvePrivateKey:
    """Load a traditional EC private key and check it is on secp256k1.

    Raises:
        PemFormatError: If the key is malformed, not EC, or on another curve.
    """
    block = extract_pem_block(pem, EC_PRIVATE_KEY)
    try:
        key = serialization.load_pem_private_key(block.encode("utf-8"), password=None)
    except (ValueError, TypeError) as e:
        raise PemFormatError(f"Malformed {EC_PRIVATE_KEY}: {e}") from e

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise PemFormatError(f"Expected an EC private key, got {type(key).__name__}")
    if key.curve.name != EXPECTED_CURVE.name:
        raise PemFormatError(
            f"Expected curve {EXPECTED_CURVE.name}, got {key.curve.name}"
        )
    return key


def load_csr(pem: str) -> x509.CertificateSigningRequest:
    """Load a CSR and check its self-signature and signature hash.

    Raises:
        PemFormatError: If the CSR is malformed, badly signed, or not SHA-256.
    """
    block = extract_pem_block(pem, CERTIFICATE_REQUEST)
    try:
        csr = x509.load_pem_x509_csr(block.encode("utf-8"))
    except ValueError as e:
        raise PemFormatError(f"Malformed {CERTIFICATE_REQUEST}: {e}") from e

    if not csr.is_signature_valid:
        raise PemFormatError(f"{CERTIFICATE_REQUEST} signature does not verify")
    if not isinstance(csr.signature_hash_algorithm, hashes.SHA256):
        raise PemFormatError(f"{CERTIFICATE_REQUEST} is not signed with SHA-256")
    return csr


def public_key_der(key: ec.EllipticCurvePublicKey) -> bytes:
    """SubjectPublicKeyInfo bytes, used to compare keys across artifacts."""
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_keys_match(private_key: ec.EllipticCurvePrivateKey, public_key: object) -> bool:
    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        return False
    return public_key_der(private_key.public_key()) == public_key_der(public_key)
