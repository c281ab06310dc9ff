"""
End-to-end BDD acceptance tests for the authentication profile PDP/PIP.

Feature: WLCG VO-CA-AP policy over an IGTF trust-anchors distribution
  LHC experiments accept every IGTF profile (IOTA included), other VOs and
  plain certificates accept classic, MICS and SLCS only.

Everything is wired through build_components(), exactly as the CLI and the
web service do; only the files on disk differ between scenarios.

Markers: @pytest.mark.acceptance — filesystem only, no external services.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest
from railway import ErrorCode, ResultAssertions

from authn_profiles.config import AppSettings
from authn_profiles.domain.errors import AuthenticationProfileError
from authn_profiles.main import Components, build_components
from authn_profiles.pip import (
    DATATYPE_STRING,
    DATATYPE_X500_NAME,
    DCI_SEC_PROFILE_ID,
    DCI_SEC_VIRTUAL_ORGANIZATION,
    DCI_SEC_X509_AUTHN_PROFILE,
    DCI_SEC_X509_SUBJECT_ISSUER,
    Attribute,
    Environment,
    Request,
    Subject,
)

pytestmark = pytest.mark.acceptance

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"

CLASSIC_CA = "/C=IT/O=INFN/CN=INFN Certification Authority"
MICS_CA = "/C=NL/O=TERENA/CN=TERENA eScience Personal CA"
SLCS_CA = "/C=DE/O=DFN-Verein/OU=DFN-PKI/CN=DFN SLCS-CA"
IOTA_CA = "/DC=ch/DC=cern/CN=CERN LCG IOTA Certification Authority"
UNACCREDITED_CA = "/C=IT/O=Whatever/CN=Lonesome CA"

LHC_VOS = ("alice", "atlas", "cms", "lhcb")
OTHER_VOS = ("dteam", "ops", "vo.example.org")


@pytest.fixture()
def deployment(tmp_path: Path) -> tuple[Path, Path]:
    """A writable copy of the trust anchors and the WLCG VO-CA-AP file."""
    certificates = tmp_path / "certificates"
    shutil.copytree(FIXTURES_DIR / "certificates", certificates)
    policy_file = tmp_path / "vo-ca-ap-file"
    shutil.copy(FIXTURES_DIR / "vo-ca-ap" / "igtf-wlcg-vo-ca-ap", policy_file)
    return certificates, policy_file


@pytest.fixture()
def components(deployment: tuple[Path, Path]) -> Components:
    certificates, policy_file = deployment
    settings = AppSettings(
        _env_file=None,  # type: ignore[call-arg]
        trust_anchors={"directory": str(certificates)},
        policy={"file": str(policy_file)},
    )
    return build_components(settings)


# ─────────────────────── VO-asserted certificates ───────────────────────


class TestVoCertificates:
    """
    Scenario: a proxy certificate asserting a VO
      Given the WLCG VO-CA-AP policy
      When the PDP is asked about the issuing CA for that VO
      Then LHC VOs accept IOTA CAs and every other VO does not.
    """

    @pytest.mark.parametrize("vo", LHC_VOS)
    @pytest.mark.parametrize("ca", [CLASSIC_CA, MICS_CA, SLCS_CA, IOTA_CA])
    def test_lhc_vos_accept_every_profile(self, components: Components, vo: str, ca: str) -> None:
        assert components.pdp.is_ca_allowed_for_vo(ca, vo).allowed

    @pytest.mark.parametrize("vo", OTHER_VOS)
    def test_other_vos_fall_back_to_any_vo_policy(self, components: Components, vo: str) -> None:
        assert components.pdp.is_ca_allowed_for_vo(CLASSIC_CA, vo).allowed
        assert components.pdp.is_ca_allowed_for_vo(SLCS_CA, vo).allowed
        assert not components.pdp.is_ca_allowed_for_vo(IOTA_CA, vo).allowed

    def test_iota_decision_names_the_iota_profile(self, components: Components) -> None:
        decision = components.pdp.is_ca_allowed_for_vo(IOTA_CA, "cms")

        assert decision.profile_alias == "policy-igtf-iota"
        assert decision.principal == "CN=CERN LCG IOTA Certification Authority,DC=cern,DC=ch"


# ─────────────────────── Plain certificates ───────────────────────


class TestPlainCertificates:
    """
    Scenario: an end-entity certificate without VO assertion
      Given the "-" rule lists classic, MICS and SLCS
      Then those CAs are allowed and IOTA CAs are denied.
    """

    @pytest.mark.parametrize(
        ("ca", "profile"),
        [
            (CLASSIC_CA, "policy-igtf-classic"),
            (MICS_CA, "policy-igtf-mics"),
            (SLCS_CA, "policy-igtf-slcs"),
        ],
    )
    def test_accredited_profiles_allowed(
        self, components: Components, ca: str, profile: str
    ) -> None:
        decision = components.pdp.is_ca_allowed(ca)

        assert decision.allowed
        assert decision.profile_alias == profile

    def test_iota_denied(self, components: Components) -> None:
        assert not components.pdp.is_ca_allowed(IOTA_CA).allowed

    def test_unaccredited_ca_is_a_trust_error(self, components: Components) -> None:
        with pytest.raises(AuthenticationProfileError):
            components.pdp.is_ca_allowed(UNACCREDITED_CA)
        with pytest.raises(AuthenticationProfileError):
            components.pdp.is_ca_allowed_for_vo(UNACCREDITED_CA, "atlas")


# ─────────────────────── PIP request rewriting ───────────────────────


class TestPipEnforcement:
    """
    Scenario: an IOTA-issued proxy for a non-LHC VO reaches the PIP
      Then the VO attributes are stripped and the X.509 subject is dropped.
    """

    def test_iota_proxy_for_other_vo_is_stripped(self, components: Components) -> None:
        request = Request(
            subjects=[
                Subject(
                    [
                        Attribute(DCI_SEC_X509_SUBJECT_ISSUER, DATATYPE_X500_NAME, [IOTA_CA]),
                        Attribute(DCI_SEC_VIRTUAL_ORGANIZATION, DATATYPE_STRING, ["dteam"]),
                    ]
                )
            ],
            environment=Environment([Attribute(DCI_SEC_PROFILE_ID)]),
        )

        assert components.pip.populate_request(request) is True
        assert request.subjects[0].attributes == []

    def test_classic_proxy_for_lhc_vo_gets_profile(self, components: Components) -> None:
        request = Request(
            subjects=[
                Subject(
                    [
                        Attribute(DCI_SEC_X509_SUBJECT_ISSUER, DATATYPE_X500_NAME, [CLASSIC_CA]),
                        Attribute(DCI_SEC_VIRTUAL_ORGANIZATION, DATATYPE_STRING, ["atlas"]),
                    ]
                )
            ],
            environment=Environment([Attribute(DCI_SEC_PROFILE_ID)]),
        )

        components.pip.populate_request(request)

        profiles = [
            a.values for a in request.subjects[0].attributes if a.id == DCI_SEC_X509_AUTHN_PROFILE
        ]
        assert profiles == [["policy-igtf-classic"]]


# ─────────────────────── Reload ───────────────────────


class TestReload:
    """
    Scenario: the distribution changes on disk while the service runs
      Then a good change takes effect on refresh and a bad one is rejected
      with the previous policies still in force.
    """

    def test_policy_change_takes_effect(
        self, components: Components, deployment: tuple[Path, Path]
    ) -> None:
        _, policy_file = deployment
        policy_file.write_text(
            '"-" = file:policy-igtf-classic.info, file:policy-igtf-iota.info\n',
            encoding="utf-8",
        )

        ResultAssertions.assert_success(components.refresh())

        assert components.pdp.is_ca_allowed(IOTA_CA).allowed
        assert not components.pdp.is_ca_allowed(SLCS_CA).allowed

    def test_broken_policy_keeps_previous_decisions(
        self, components: Components, deployment: tuple[Path, Path]
    ) -> None:
        _, policy_file = deployment
        policy_file.write_text(
            '"-" = file:policy-igtf-classic.info\n"-" = file:policy-igtf-iota.info\n',
            encoding="utf-8",
        )

        result = components.refresh()

        ResultAssertions.assert_failure(result, ErrorCode.PARSE_ERROR)
        assert components.pdp.is_ca_allowed(MICS_CA).allowed
        assert not components.pdp.is_ca_allowed(IOTA_CA).allowed

    def test_new_profile_file_becomes_usable(
        self, components: Components, deployment: tuple[Path, Path]
    ) -> None:
        """
        GIVEN a new policy-*.info file and a VO-CA-AP rule referencing it
        WHEN refresh() runs
        THEN the new CA is known and allowed.
        """
        certificates, policy_file = deployment
        (certificates / "policy-local.info").write_text(
            f'alias = policy-local\nsubjectdn = "{UNACCREDITED_CA}"\n', encoding="utf-8"
        )
        policy_file.write_text('"-" = file:policy-local.info\n', encoding="utf-8")

        ResultAssertions.assert_success(components.refresh())

        assert components.pdp.is_ca_allowed(UNACCREDITED_CA).profile_alias == "policy-local"

    def test_missing_trust_anchors_keep_previous_state(
        self, components: Components, deployment: tuple[Path, Path]
    ) -> None:
        certificates, _ = deployment
        shutil.rmtree(certificates)

        result = components.refresh()

        ResultAssertions.assert_failure(result, ErrorCode.CONFIGURATION_ERROR)
        assert components.pdp.is_ca_allowed(CLASSIC_CA).allowed
