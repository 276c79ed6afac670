"""Certificate and key generation using cryptography."""

import ipaddress
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from concourse_up.core.exceptions import CertificateError
from concourse_up.core.logging import StructuredLogger
from concourse_up.deploy.models import CertificateBundle

logger = StructuredLogger(__name__)

KEY_SIZE = 2048
CA_VALIDITY = timedelta(days=730)
CERT_VALIDITY = timedelta(days=365)


def _private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=KEY_SIZE)


def _pem_key(key: rsa.RSAPrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def _pem_cert(cert: x509.Certificate) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode()


def _subject_alt_names(subjects: tuple[str, ...]) -> list[x509.GeneralName]:
    names: list[x509.GeneralName] = []
    for subject in subjects:
        try:
            names.append(x509.IPAddress(ipaddress.ip_address(subject)))
        except ValueError:
            names.append(x509.DNSName(subject))
    return names


def generate_certs(ca_name: str, *subjects: str) -> CertificateBundle:
    """Generate a CA and a leaf certificate signed by it.

    Args:
        ca_name: Common name of the CA (the deployment name)
        *subjects: Hostnames or IP addresses the leaf certificate is valid for.
            The first one becomes the common name.

    Returns:
        CertificateBundle with PEM encoded CA cert, cert and key
    """
    if not subjects:
        raise CertificateError("at least one certificate subject is required")

    now = datetime.now(timezone.utc)

    try:
        ca_key = _private_key()
        ca_subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, ca_name)])
        ca_cert = (
            x509.CertificateBuilder()
            .subject_name(ca_subject)
            .issuer_name(ca_subject)
            .public_key(ca_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=5))
            .not_valid_after(now + CA_VALIDITY)
            .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .sign(ca_key, hashes.SHA256())
        )

        key = _private_key()
        cert = (
            x509.CertificateBuilder()
            .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, subjects[0])]))
            .issuer_name(ca_subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=5))
            .not_valid_after(now + CERT_VALIDITY)
            .add_extension(x509.SubjectAlternativeName(_subject_alt_names(subjects)), critical=False)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
            .add_extension(
                x509.ExtendedKeyUsage(
                    [ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]
                ),
                critical=False,
            )
            .sign(ca_key, hashes.SHA256())
        )
    except ValueError as e:
        raise CertificateError(f"Failed to generate certificate for {subjects[0]}: {e}")

    logger.debug("Generated certificate", ca=ca_name, subjects=",".join(subjects))

    return CertificateBundle(ca_cert=_pem_cert(ca_cert), cert=_pem_cert(cert), key=_pem_key(key))


def generate_ssh_key_pair() -> tuple[str, str]:
    """Generate an RSA key pair for SSH access to the director.

    Returns:
        (public key in OpenSSH format, private key in PEM format)
    """
    key = _private_key()
    public_key = key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    ).decode()
    return public_key, _pem_key(key)
