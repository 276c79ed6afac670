"""Tests for configuration checks before and after terraform."""

import json

import pytest

from concourse_up.clients.aws import longest_matching_zone
from concourse_up.core.exceptions import ConfigConflictError
from concourse_up.deploy.certs import CertificateManager
from concourse_up.deploy.models import CONFIG_FILENAME, Configuration, DeployArgs
from concourse_up.deploy.requirements import (
    ConfigRequirementResolver,
    domain_changed,
    record_prefix,
)

from conftest import CountingCertGenerator, FakeIaaS


class TestRecordPrefix:
    @pytest.mark.parametrize(
        "domain,zone,expected",
        [
            ("ci.example.com", "example.com", "ci"),
            ("a.sub.example.com", "sub.example.com", "a"),
            ("a.b.example.com", "example.com", "a.b"),
            ("example.com", "example.com", ""),
            ("ci.example.com.", "example.com.", "ci"),
            ("CI.Example.com", "example.com", "CI"),
            ("Example.COM", "example.com", ""),
        ],
    )
    def test_prefix(self, domain, zone, expected):
        assert record_prefix(domain, zone) == expected

    def test_mixed_case_domain_with_matched_zone(self):
        zone_name, _ = longest_matching_zone(
            "CI.Example.com", [{"Name": "example.com.", "Id": "/hostedzone/Z1"}]
        )
        assert record_prefix("CI.Example.com", zone_name) == "CI"


class TestDomainChanged:
    def test_ip_deploy_unchanged(self, metadata):
        assert not domain_changed("77.77.77.77", DeployArgs(deployment="ci"), metadata)

    def test_first_deploy(self, metadata):
        assert domain_changed("", DeployArgs(deployment="ci"), metadata)

    def test_new_domain(self, metadata):
        args = DeployArgs(deployment="ci", domain="ci.example.com")
        assert domain_changed("77.77.77.77", args, metadata)

    def test_same_domain(self, metadata):
        args = DeployArgs(deployment="ci", domain="ci.example.com")
        assert not domain_changed("ci.example.com", args, metadata)


@pytest.fixture
def iaas() -> FakeIaaS:
    return FakeIaaS({"example.com": "Z1", "sub.example.com": "Z2"})


def resolver_for(args, store, iaas, output, ip="1.2.3.4", generator=None):
    generator = generator or CountingCertGenerator()
    return ConfigRequirementResolver(
        args,
        store,
        iaas,
        lambda: ip,
        CertificateManager(generator, output),
        output,
    )


class TestPreInfrastructure:
    def test_region_conflict(self, store, iaas, output):
        resolver = resolver_for(DeployArgs(deployment="ci", aws_region="eu-west-2"), store, iaas, output)

        with pytest.raises(ConfigConflictError) as exc_info:
            resolver.pre_infrastructure(Configuration(region="us-east-1"))

        assert exc_info.value.message == (
            "found previous deployment in us-east-1. Refusing to deploy to eu-west-2 "
            "as changing regions for existing deployments is not supported"
        )
        assert exc_info.value.details["existing_region"] == "us-east-1"
        assert store.writes == []

    def test_sets_region_when_empty(self, store, iaas, output):
        resolver = resolver_for(DeployArgs(deployment="ci", aws_region="eu-west-2"), store, iaas, output)
        config = resolver.pre_infrastructure(Configuration())
        assert config.region == "eu-west-2"

    def test_source_ip_recorded(self, store, iaas, output, stderr):
        resolver = resolver_for(DeployArgs(deployment="ci"), store, iaas, output)
        config = resolver.pre_infrastructure(Configuration(region="eu-west-1"))

        assert config.source_access_ip == "1.2.3.4"
        assert "allowing access from local machine (address: 1.2.3.4)" in stderr.getvalue()
        saved = json.loads(store.assets[CONFIG_FILENAME])
        assert saved["source_access_ip"] == "1.2.3.4"

    def test_unchanged_source_ip_is_quiet(self, store, iaas, output, stderr):
        resolver = resolver_for(DeployArgs(deployment="ci"), store, iaas, output)
        resolver.pre_infrastructure(Configuration(region="eu-west-1", source_access_ip="1.2.3.4"))

        assert stderr.getvalue() == ""
        assert store.writes == []

    def test_self_update_skips_ip_lookup(self, store, iaas, output):
        def fail():
            raise AssertionError("ip lookup in self-update mode")

        resolver = ConfigRequirementResolver(
            DeployArgs(deployment="ci", self_update=True),
            store,
            iaas,
            fail,
            CertificateManager(CountingCertGenerator(), output),
            output,
        )
        config = resolver.pre_infrastructure(Configuration(region="eu-west-1", source_access_ip="9.9.9.9"))
        assert config.source_access_ip == "9.9.9.9"

    def test_hosted_zone(self, store, iaas, output, stderr):
        args = DeployArgs(deployment="ci", domain="a.sub.example.com")
        config = resolver_for(args, store, iaas, output).pre_infrastructure(
            Configuration(region="eu-west-1", source_access_ip="1.2.3.4")
        )

        assert iaas.lookups == ["a.sub.example.com"]
        assert config.hosted_zone_id == "Z2"
        assert config.hosted_zone_record_prefix == "a"
        assert config.domain == "a.sub.example.com"
        assert (
            "adding record a.sub.example.com to Route53 hosted zone sub.example.com ID: Z2"
            in stderr.getvalue()
        )
        assert json.loads(store.assets[CONFIG_FILENAME])["hosted_zone_id"] == "Z2"

    def test_no_domain_skips_hosted_zone(self, store, iaas, output):
        resolver_for(DeployArgs(deployment="ci"), store, iaas, output).pre_infrastructure(
            Configuration(region="eu-west-1")
        )
        assert iaas.lookups == []

    def test_db_size_applied_only_when_set(self, store, iaas, output):
        config = Configuration(region="eu-west-1", rds_instance_class="db.m4.xlarge")

        resolver_for(DeployArgs(deployment="ci"), store, iaas, output).pre_infrastructure(config)
        assert config.rds_instance_class == "db.m4.xlarge"

        args = DeployArgs(deployment="ci", db_size="medium", db_size_is_set=True)
        resolver_for(args, store, iaas, output).pre_infrastructure(config)
        assert config.rds_instance_class == "db.t2.medium"


class TestPostInfrastructure:
    def test_ip_domain_and_checkpoint(self, store, iaas, output, metadata):
        generator = CountingCertGenerator()
        args = DeployArgs(deployment="ci", worker_count=2, worker_size="large", web_size="medium")
        resolver = resolver_for(args, store, iaas, output, generator=generator)

        config = resolver.post_infrastructure(True, Configuration(deployment="concourse-up-ci"), metadata)

        assert config.domain == "77.77.77.77"
        assert config.director_public_ip == "99.99.99.99"
        assert config.concourse_worker_count == 2
        assert config.concourse_worker_size == "large"
        assert config.concourse_web_size == "medium"
        assert config.director_cert == "CERT-1"
        assert config.concourse_cert == "CERT-2"
        assert Configuration.from_dict(json.loads(store.assets[CONFIG_FILENAME])) == config

    def test_keeps_explicit_domain(self, store, iaas, output, metadata):
        args = DeployArgs(deployment="ci", domain="ci.example.com")
        config = resolver_for(args, store, iaas, output).post_infrastructure(
            True, Configuration(deployment="concourse-up-ci", domain="ci.example.com"), metadata
        )
        assert config.domain == "ci.example.com"
