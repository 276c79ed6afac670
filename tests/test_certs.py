"""Tests for certificate generation and the certificate lifecycle."""

import ipaddress
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from concourse_up.certs import generate_certs, generate_ssh_key_pair
from concourse_up.core.exceptions import CertificateError
from concourse_up.deploy import certs as cert_lifecycle
from concourse_up.deploy.certs import RENEWAL_THRESHOLD, CertificateManager, time_till_expiry
from concourse_up.deploy.models import CertificateBundle, Configuration, DeployArgs


@pytest.fixture(scope="module")
def bundle():
    return generate_certs("concourse-up-ci", "ci.example.com", "10.0.0.6")


class TestGenerateCerts:
    def test_leaf_signed_by_ca(self, bundle):
        ca = x509.load_pem_x509_certificate(bundle.ca_cert.encode())
        cert = x509.load_pem_x509_certificate(bundle.cert.encode())

        assert cert.issuer == ca.subject
        cert.verify_directly_issued_by(ca)

    def test_subjects(self, bundle):
        cert = x509.load_pem_x509_certificate(bundle.cert.encode())
        common_name = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value

        assert common_name == "ci.example.com"
        assert san.get_values_for_type(x509.DNSName) == ["ci.example.com"]
        assert san.get_values_for_type(x509.IPAddress) == [ipaddress.ip_address("10.0.0.6")]

    def test_ca_name(self, bundle):
        ca = x509.load_pem_x509_certificate(bundle.ca_cert.encode())
        common_name = ca.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
        basic = ca.extensions.get_extension_for_class(x509.BasicConstraints).value

        assert common_name == "concourse-up-ci"
        assert basic.ca is True

    def test_key_matches_cert(self, bundle):
        key = serialization.load_pem_private_key(bundle.key.encode(), password=None)
        cert = x509.load_pem_x509_certificate(bundle.cert.encode())
        assert key.public_key().public_numbers() == cert.public_key().public_numbers()

    def test_requires_subject(self):
        with pytest.raises(CertificateError):
            generate_certs("concourse-up-ci")


class TestSSHKeyPair:
    def test_formats(self):
        public_key, private_key = generate_ssh_key_pair()
        assert public_key.startswith("ssh-rsa ")
        assert "PRIVATE KEY" in private_key


class TestTimeTillExpiry:
    def test_fresh_certificate(self, bundle):
        remaining = time_till_expiry(bundle.cert)
        assert timedelta(days=360) < remaining <= timedelta(days=365)

    def test_relative_to_now(self, bundle):
        later = datetime.now(timezone.utc) + timedelta(days=350)
        assert time_till_expiry(bundle.cert, now=later) < RENEWAL_THRESHOLD

    @pytest.mark.parametrize("cert", ["", "not a certificate", "-----BEGIN CERTIFICATE-----\nxx\n"])
    def test_malformed_counts_as_expired(self, cert):
        assert time_till_expiry(cert) == timedelta(0)


class RecordingGenerator:
    def __init__(self):
        self.calls = []

    def __call__(self, ca_name, *subjects):
        self.calls.append((ca_name, *subjects))
        return CertificateBundle("NEW-CA", "NEW-CERT", "NEW-KEY")


@pytest.fixture
def generator():
    return RecordingGenerator()


@pytest.fixture
def manager(generator, output):
    return CertificateManager(generator, output)


def existing_config(**overrides) -> Configuration:
    values = dict(
        deployment="concourse-up-ci",
        domain="ci.example.com",
        concourse_ca_cert="OLD-CA",
        concourse_cert="OLD-CERT",
        concourse_key="OLD-KEY",
    )
    values.update(overrides)
    return Configuration(**values)


class TestDirectorCerts:
    def test_generated_when_missing(self, manager, generator, metadata, stdout):
        config = manager.ensure_director_certs(Configuration(deployment="concourse-up-ci"), metadata)

        assert generator.calls == [("concourse-up-ci", "99.99.99.99", "10.0.0.6")]
        assert config.director_ca_cert == "NEW-CA"
        assert config.director_cert == "NEW-CERT"
        assert config.director_key == "NEW-KEY"
        assert "GENERATING BOSH DIRECTOR CERTIFICATE (99.99.99.99, 10.0.0.6)" in stdout.getvalue()

    def test_kept_when_present(self, manager, generator, metadata):
        config = Configuration(director_ca_cert="CA", director_cert="CERT", director_key="KEY")
        manager.ensure_director_certs(config, metadata)

        assert generator.calls == []
        assert config.director_cert == "CERT"


class TestConcourseCerts:
    def test_user_cert_adopted(self, manager, generator):
        args = DeployArgs(deployment="ci", domain="ci.example.com", tls_cert="MINE", tls_key="MY-KEY")
        config = manager.ensure_concourse_certs(True, existing_config(), args)

        assert generator.calls == []
        assert config.concourse_cert == "MINE"
        assert config.concourse_key == "MY-KEY"
        assert config.concourse_ca_cert == ""
        assert config.concourse_user_provided_cert is True

    def test_user_cert_not_regenerated_on_domain_change(self, manager, generator):
        config = existing_config(concourse_ca_cert="", concourse_user_provided_cert=True)
        manager.ensure_concourse_certs(True, config, DeployArgs(deployment="ci"))

        assert generator.calls == []
        assert config.concourse_cert == "OLD-CERT"

    def test_valid_cert_kept(self, manager, generator, monkeypatch):
        monkeypatch.setattr(cert_lifecycle, "time_till_expiry", lambda cert: timedelta(days=100))
        config = manager.ensure_concourse_certs(False, existing_config(), DeployArgs(deployment="ci"))

        assert generator.calls == []
        assert config.concourse_cert == "OLD-CERT"

    def test_expiring_cert_regenerated(self, manager, generator, monkeypatch):
        monkeypatch.setattr(cert_lifecycle, "time_till_expiry", lambda cert: timedelta(days=27))
        config = manager.ensure_concourse_certs(False, existing_config(), DeployArgs(deployment="ci"))

        assert generator.calls == [("concourse-up-ci", "ci.example.com")]
        assert config.concourse_cert == "NEW-CERT"
        assert config.concourse_ca_cert == "NEW-CA"

    def test_domain_change_regenerates(self, manager, generator, monkeypatch):
        monkeypatch.setattr(cert_lifecycle, "time_till_expiry", lambda cert: timedelta(days=300))
        manager.ensure_concourse_certs(True, existing_config(), DeployArgs(deployment="ci"))

        assert generator.calls == [("concourse-up-ci", "ci.example.com")]

    def test_missing_cert_generated(self, manager, generator):
        config = Configuration(deployment="concourse-up-ci", domain="77.77.77.77")
        manager.ensure_concourse_certs(False, config, DeployArgs(deployment="ci"))

        assert generator.calls == [("concourse-up-ci", "77.77.77.77")]
        assert config.concourse_user_provided_cert is False
