# START OF FILE clusterseed/manage_certs.py
"""
Certificate Management for ClusterSeed

Issues node-scoped TLS identities from a private root CA. A rendered CSR
document (cfssl-style JSON) is turned into a fresh key pair and CSR, and the
CSR is signed with the root CA using a profile from the CA's signing config.
"""

import json
import logging
import re
import ipaddress
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from clusterseed.errors import RequestError, SigningError
from clusterseed.models import RootCA

logger = logging.getLogger(__name__)

RSA_KEY_SIZES = (2048, 3072, 4096)
ECDSA_CURVES = {
    256: ec.SECP256R1,
    384: ec.SECP384R1,
    521: ec.SECP521R1,
}

NAME_ATTRIBUTES = [
    ("C", NameOID.COUNTRY_NAME),
    ("ST", NameOID.STATE_OR_PROVINCE_NAME),
    ("L", NameOID.LOCALITY_NAME),
    ("O", NameOID.ORGANIZATION_NAME),
    ("OU", NameOID.ORGANIZATIONAL_UNIT_NAME),
]

KEY_USAGES = {
    "signing": "digital_signature",
    "digital signature": "digital_signature",
    "content commitment": "content_commitment",
    "key encipherment": "key_encipherment",
    "data encipherment": "data_encipherment",
    "key agreement": "key_agreement",
    "cert sign": "key_cert_sign",
    "crl sign": "crl_sign",
}

EXTENDED_KEY_USAGES = {
    "server auth": ExtendedKeyUsageOID.SERVER_AUTH,
    "client auth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "code signing": ExtendedKeyUsageOID.CODE_SIGNING,
    "email protection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "timestamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "ocsp signing": ExtendedKeyUsageOID.OCSP_SIGNING,
}

# Issued certificates are backdated to tolerate clock skew between nodes
BACKDATE = timedelta(minutes=5)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(h|m|s)")


def parse_duration(value: str) -> timedelta:
    """
    Parse a Go-style duration such as "87600h" or "1h30m".

    Raises:
        ValueError: If the string is not a duration
    """
    value = value.strip()
    if not value or _DURATION_PART.sub("", value):
        raise ValueError(f"invalid duration: {value!r}")

    units = {"h": 3600, "m": 60, "s": 1}
    seconds = sum(float(amount) * units[unit] for amount, unit in _DURATION_PART.findall(value))
    return timedelta(seconds=seconds)


@dataclass
class CertificateRequest:
    """A parsed cfssl-style certificate request."""
    common_name: str
    hosts: List[str] = field(default_factory=list)
    names: List[Dict[str, str]] = field(default_factory=list)
    key_algo: str = "ecdsa"
    key_size: int = 256

    @classmethod
    def from_document(cls, document: bytes) -> "CertificateRequest":
        """
        Parse a rendered CSR document.

        Raises:
            RequestError: The document is not a well-formed request
        """
        try:
            data = json.loads(document)
        except (ValueError, UnicodeDecodeError) as e:
            raise RequestError(f"invalid certificate request: {e}") from e

        if not isinstance(data, dict):
            raise RequestError("invalid certificate request: expected a JSON object")

        common_name = data.get("CN", "")
        hosts = data.get("hosts") or []
        names = data.get("names") or []
        key = data.get("key") or {}

        if not isinstance(common_name, str):
            raise RequestError("invalid certificate request: CN must be a string")
        if not isinstance(hosts, list) or not all(isinstance(h, str) for h in hosts):
            raise RequestError("invalid certificate request: hosts must be a list of strings")
        if not isinstance(names, list) or not all(isinstance(n, dict) for n in names):
            raise RequestError("invalid certificate request: names must be a list of objects")
        if not isinstance(key, dict):
            raise RequestError("invalid certificate request: key must be an object")

        if not common_name and not any(names):
            raise RequestError("invalid certificate request: missing subject information")

        # Defaults follow cfssl's basic key request
        key_algo = str(key.get("algo", "ecdsa")).lower()
        key_size = key.get("size", 256 if key_algo == "ecdsa" else 2048)

        if key_algo == "rsa":
            if key_size not in RSA_KEY_SIZES:
                raise RequestError(f"invalid RSA key size: {key_size}")
        elif key_algo == "ecdsa":
            if key_size not in ECDSA_CURVES:
                raise RequestError(f"invalid ECDSA curve size: {key_size}")
        else:
            raise RequestError(f"unsupported key algorithm: {key_algo}")

        return cls(
            common_name=common_name,
            hosts=[h for h in hosts if h],
            names=names,
            key_algo=key_algo,
            key_size=key_size,
        )

    def subject(self) -> x509.Name:
        """Build the X.509 subject name."""
        attributes = []
        for entry in self.names:
            for key, oid in NAME_ATTRIBUTES:
                value = entry.get(key)
                if value:
                    attributes.append(x509.NameAttribute(oid, str(value)))
        if self.common_name:
            attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, self.common_name))
        return x509.Name(attributes)

    def subject_alternative_names(self) -> List[x509.GeneralName]:
        """IP hosts become IP SANs, everything else a DNS SAN."""
        sans = []
        for host in self.hosts:
            try:
                sans.append(x509.IPAddress(ipaddress.ip_address(host)))
            except ValueError:
                sans.append(x509.DNSName(host))
        return sans

    def generate_key(self):
        """Generate the private key described by the request."""
        if self.key_algo == "rsa":
            return rsa.generate_private_key(public_exponent=65537, key_size=self.key_size)
        return ec.generate_private_key(ECDSA_CURVES[self.key_size]())


@dataclass
class SigningProfile:
    """Expiry and usages applied to issued certificates."""
    name: str
    expiry: timedelta
    usages: List[str]

    def key_usage(self) -> x509.KeyUsage:
        flags = {
            "digital_signature": False,
            "content_commitment": False,
            "key_encipherment": False,
            "data_encipherment": False,
            "key_agreement": False,
            "key_cert_sign": False,
            "crl_sign": False,
        }
        for usage in self.usages:
            if usage in KEY_USAGES:
                flags[KEY_USAGES[usage]] = True
        return x509.KeyUsage(encipher_only=False, decipher_only=False, **flags)

    def extended_key_usages(self) -> List[x509.ObjectIdentifier]:
        return [EXTENDED_KEY_USAGES[u] for u in self.usages if u in EXTENDED_KEY_USAGES]


@dataclass
class IssuedCertificate:
    """PEM buffers produced for one node. Persisting them is the caller's job."""
    key: bytes
    csr: bytes
    certificate: bytes


@dataclass
class CertificateInfo:
    """Information about a certificate"""
    common_name: str
    hostnames: List[str]
    ip_addresses: List[str]
    issuer: str
    valid_from: datetime
    valid_until: datetime
    serial_number: int


def load_signing_profile(config_path: str, profile: str) -> SigningProfile:
    """
    Read a profile from a cfssl-style signing config.

    The profile inherits expiry and usages from "signing.default" where it
    does not set its own.

    Raises:
        SigningError: Unreadable config or unknown profile
    """
    try:
        with open(config_path, "r") as f:
            config = json.load(f)
    except (OSError, ValueError) as e:
        raise SigningError(f"failed to read signing config {config_path}: {e}") from e

    signing = config.get("signing") if isinstance(config, dict) else None
    if not isinstance(signing, dict):
        raise SigningError(f"signing config {config_path} has no 'signing' section")

    default = signing.get("default") or {}
    profiles = signing.get("profiles") or {}

    if profile and profile not in profiles:
        raise SigningError(f"signing profile {profile!r} not found in {config_path}")

    selected = profiles.get(profile, {}) if profile else {}
    expiry = selected.get("expiry") or default.get("expiry") or "8760h"
    usages = selected.get("usages") or default.get("usages") or [
        "signing", "key encipherment", "server auth", "client auth"
    ]

    try:
        expiry_delta = parse_duration(expiry)
    except ValueError as e:
        raise SigningError(f"signing profile {profile!r}: {e}") from e

    usages = [str(u).lower() for u in usages]
    unknown = [u for u in usages if u not in KEY_USAGES and u not in EXTENDED_KEY_USAGES]
    if unknown:
        raise SigningError(f"signing profile {profile!r} has unknown usages: {', '.join(unknown)}")

    return SigningProfile(name=profile, expiry=expiry_delta, usages=usages)


class CertificateAuthorityIssuer:
    """
    Signs node-scoped leaf certificates with the root CA.

    The CA files are read on first use and shared read-only by all worker
    threads afterwards. A load failure is raised as SigningError from every
    issue() call so it fails each node's contribution.
    """

    DEFAULT_PROFILE = "kubernetes"

    def __init__(self, root_ca: RootCA, profile: str = DEFAULT_PROFILE):
        self.root_ca = root_ca
        self.profile_name = profile
        self._lock = threading.Lock()
        self._signer: Optional[Tuple[x509.Certificate, object, SigningProfile]] = None

    def _load_signer(self) -> Tuple[x509.Certificate, object, SigningProfile]:
        with self._lock:
            if self._signer is not None:
                return self._signer

            try:
                with open(self.root_ca.cert_path, "rb") as f:
                    ca_cert = x509.load_pem_x509_certificate(f.read())
            except (OSError, ValueError) as e:
                raise SigningError(f"failed to load CA certificate {self.root_ca.cert_path}: {e}") from e

            try:
                with open(self.root_ca.key_path, "rb") as f:
                    ca_key = serialization.load_pem_private_key(f.read(), password=None)
            except (OSError, ValueError, TypeError) as e:
                raise SigningError(f"failed to load CA key {self.root_ca.key_path}: {e}") from e

            if not isinstance(ca_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
                raise SigningError("unsupported CA key type; expected RSA or ECDSA")

            spki = serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
            if ca_key.public_key().public_bytes(*spki) != ca_cert.public_key().public_bytes(*spki):
                raise SigningError("CA key does not match CA certificate")

            profile = load_signing_profile(self.root_ca.config_path, self.profile_name)

            logger.debug(f"Loaded root CA {ca_cert.subject.rfc4514_string()} (profile {profile.name})")
            self._signer = (ca_cert, ca_key, profile)
            return self._signer

    def generate_csr(self, request: CertificateRequest) -> Tuple[bytes, bytes]:
        """
        Generate a key pair and CSR for a request.

        Returns:
            Tuple of (key_pem, csr_pem)
        """
        key = request.generate_key()

        builder = x509.CertificateSigningRequestBuilder().subject_name(request.subject())
        sans = request.subject_alternative_names()
        if sans:
            builder = builder.add_extension(x509.SubjectAlternativeName(sans), critical=False)

        csr = builder.sign(key, hashes.SHA256())

        key_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return key_pem, csr.public_bytes(serialization.Encoding.PEM)

    def sign(self, csr_pem: bytes) -> bytes:
        """
        Sign a PEM CSR with the root CA.

        Hosts are taken from the CSR as-is; the certificate is not pinned to
        a hostname by the signer.

        Raises:
            SigningError: CA unusable or CSR rejected
        """
        ca_cert, ca_key, profile = self._load_signer()

        try:
            csr = x509.load_pem_x509_csr(csr_pem)
        except ValueError as e:
            raise SigningError(f"failed to parse CSR: {e}") from e

        if not csr.is_signature_valid:
            raise SigningError("CSR signature validation failed")

        now = datetime.now(timezone.utc)
        not_before = now - BACKDATE
        not_after = now + profile.expiry
        if not_after > ca_cert.not_valid_after_utc:
            not_after = ca_cert.not_valid_after_utc

        public_key = csr.public_key()
        builder = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(ca_cert.subject)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(profile.key_usage(), critical=True)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_cert.public_key()),
                critical=False,
            )
        )

        extended = profile.extended_key_usages()
        if extended:
            builder = builder.add_extension(x509.ExtendedKeyUsage(extended), critical=False)

        try:
            san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
            builder = builder.add_extension(san.value, critical=False)
        except x509.ExtensionNotFound:
            pass

        try:
            certificate = builder.sign(ca_key, hashes.SHA256())
        except (ValueError, TypeError) as e:
            raise SigningError(f"failed to sign certificate: {e}") from e

        return certificate.public_bytes(serialization.Encoding.PEM)

    def issue(self, csr_document: bytes) -> IssuedCertificate:
        """
        Issue a key, CSR and certificate from a rendered CSR document.

        Args:
            csr_document: Rendered cfssl-style JSON request

        Returns:
            IssuedCertificate with PEM buffers

        Raises:
            RequestError: The document is not a well-formed request
            SigningError: The CA could not sign it
        """
        request = CertificateRequest.from_document(csr_document)
        key_pem, csr_pem = self.generate_csr(request)
        cert_pem = self.sign(csr_pem)

        logger.debug(f"Issued certificate for CN={request.common_name} hosts={request.hosts}")
        return IssuedCertificate(key=key_pem, csr=csr_pem, certificate=cert_pem)


def verify_certificate(cert_pem: bytes, ca_pem: bytes) -> bool:
    """Check that a certificate was signed by the given CA certificate."""
    try:
        cert = x509.load_pem_x509_certificate(cert_pem)
        ca_cert = x509.load_pem_x509_certificate(ca_pem)
        cert.verify_directly_issued_by(ca_cert)
        return True
    except (ValueError, TypeError, InvalidSignature):
        return False


def describe_certificate(cert_pem: bytes) -> CertificateInfo:
    """Extract subject, SANs and validity from a PEM certificate."""
    cert = x509.load_pem_x509_certificate(cert_pem)

    cn_attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    common_name = str(cn_attrs[0].value) if cn_attrs else ""

    hostnames: List[str] = []
    ip_addresses: List[str] = []
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        hostnames = san.get_values_for_type(x509.DNSName)
        ip_addresses = [str(ip) for ip in san.get_values_for_type(x509.IPAddress)]
    except x509.ExtensionNotFound:
        pass

    return CertificateInfo(
        common_name=common_name,
        hostnames=hostnames,
        ip_addresses=ip_addresses,
        issuer=cert.issuer.rfc4514_string(),
        valid_from=cert.not_valid_before_utc,
        valid_until=cert.not_valid_after_utc,
        serial_number=cert.serial_number,
    )
