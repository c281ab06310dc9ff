"""
Unit tests for the authentication profile PDP — decision algorithm.

Collaborators are mocked: the repository maps subjects to profiles, the
policy provider hands out a fixed policy set.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from authn_profiles.domain.errors import AuthenticationProfileError
from authn_profiles.domain.models import (
    AuthenticationProfile,
    AuthenticationProfilePolicy,
    AuthenticationProfilePolicySet,
)
from authn_profiles.pdp import AuthenticationProfilePDP

CA_A = "CN=Classic CA,O=Example,C=IT"
CA_B = "CN=SLCS CA,O=Example,C=DE"
CA_C = "CN=Lonesome CA,O=Whatever,C=IT"

CLASSIC = AuthenticationProfile("classic", frozenset({CA_A}))
SLCS = AuthenticationProfile("slcs", frozenset({CA_B}))


def _repository(*profiles: AuthenticationProfile) -> MagicMock:
    repo = MagicMock()
    repo.find_profiles_for_subject.side_effect = lambda subject: frozenset(
        p for p in profiles if subject in p.ca_subjects
    )
    return repo


def _provider(policy_set: AuthenticationProfilePolicySet) -> MagicMock:
    provider = MagicMock()
    provider.get.return_value = policy_set
    return provider


def _policy(*profiles: AuthenticationProfile) -> AuthenticationProfilePolicy:
    return AuthenticationProfilePolicy(profiles)


@pytest.fixture()
def scenario_pdp() -> AuthenticationProfilePDP:
    """classic={A}, slcs={B}; /* = classic,slcs; "-" = classic."""
    policy_set = AuthenticationProfilePolicySet(
        any_vo_profile_policy=_policy(CLASSIC, SLCS),
        any_certificate_profile_policy=_policy(CLASSIC),
    )
    return AuthenticationProfilePDP(_repository(CLASSIC, SLCS), _provider(policy_set))


# ─────────────────────── is_ca_allowed ───────────────────────


class TestIsCaAllowed:
    """Plain-certificate path, no VO asserted."""

    def test_allowed_by_any_certificate_policy(self, scenario_pdp: AuthenticationProfilePDP) -> None:
        decision = scenario_pdp.is_ca_allowed(CA_A)

        assert decision.allowed
        assert decision.profile == CLASSIC
        assert decision.principal == CA_A

    def test_denied_when_profile_not_in_policy(self, scenario_pdp: AuthenticationProfilePDP) -> None:
        decision = scenario_pdp.is_ca_allowed(CA_B)

        assert not decision.allowed
        assert decision.profile is None

    def test_denied_without_any_certificate_policy(self) -> None:
        policy_set = AuthenticationProfilePolicySet(any_vo_profile_policy=_policy(CLASSIC))
        pdp = AuthenticationProfilePDP(_repository(CLASSIC), _provider(policy_set))

        assert not pdp.is_ca_allowed(CA_A).allowed

    def test_unknown_ca_is_trust_error(self, scenario_pdp: AuthenticationProfilePDP) -> None:
        """
        GIVEN a CA listed in no profile
        WHEN is_ca_allowed is called
        THEN AuthenticationProfileError is raised, never a Deny.
        """
        with pytest.raises(
            AuthenticationProfileError, match="No authentication profile found for X500 principal"
        ) as excinfo:
            scenario_pdp.is_ca_allowed(CA_C)

        assert excinfo.value.principal == CA_C

    def test_openssl_principal_is_normalized(self, scenario_pdp: AuthenticationProfilePDP) -> None:
        decision = scenario_pdp.is_ca_allowed("/C=IT/O=Example/CN=Classic CA")

        assert decision.allowed
        assert decision.principal == CA_A

    def test_unparseable_principal_is_trust_error(
        self, scenario_pdp: AuthenticationProfilePDP
    ) -> None:
        with pytest.raises(AuthenticationProfileError):
            scenario_pdp.is_ca_allowed("not a distinguished name")

    def test_none_principal(self, scenario_pdp: AuthenticationProfilePDP) -> None:
        with pytest.raises(ValueError):
            scenario_pdp.is_ca_allowed(None)  # type: ignore[arg-type]


# ─────────────────────── is_ca_allowed_for_vo ───────────────────────


class TestIsCaAllowedForVo:
    """VO-asserted path: VO policy first, then the /* fallback."""

    def test_any_vo_fallback_for_unlisted_vo(self, scenario_pdp: AuthenticationProfilePDP) -> None:
        decision = scenario_pdp.is_ca_allowed_for_vo(CA_B, "anyvo-not-listed")

        assert decision.allowed
        assert decision.profile == SLCS

    def test_vo_policy_allows(self) -> None:
        policy_set = AuthenticationProfilePolicySet(vo_profile_policies={"atlas": _policy(SLCS)})
        pdp = AuthenticationProfilePDP(_repository(CLASSIC, SLCS), _provider(policy_set))

        assert pdp.is_ca_allowed_for_vo(CA_B, "atlas").profile == SLCS

    def test_any_vo_overrides_vo_specific_deny(self) -> None:
        """
        GIVEN a VO policy that denies the CA and a /* policy that accepts it
        WHEN is_ca_allowed_for_vo is called for that VO
        THEN the /* policy decides: Allow.
        """
        policy_set = AuthenticationProfilePolicySet(
            vo_profile_policies={"atlas": _policy(CLASSIC)},
            any_vo_profile_policy=_policy(SLCS),
        )
        pdp = AuthenticationProfilePDP(_repository(CLASSIC, SLCS), _provider(policy_set))

        decision = pdp.is_ca_allowed_for_vo(CA_B, "atlas")

        assert decision.allowed
        assert decision.profile == SLCS

    def test_vo_specific_deny_without_fallback(self) -> None:
        policy_set = AuthenticationProfilePolicySet(vo_profile_policies={"atlas": _policy(CLASSIC)})
        pdp = AuthenticationProfilePDP(_repository(CLASSIC, SLCS), _provider(policy_set))

        assert not pdp.is_ca_allowed_for_vo(CA_B, "atlas").allowed

    def test_no_vo_policies_at_all(self) -> None:
        policy_set = AuthenticationProfilePolicySet(any_certificate_profile_policy=_policy(CLASSIC))
        pdp = AuthenticationProfilePDP(_repository(CLASSIC), _provider(policy_set))

        assert not pdp.is_ca_allowed_for_vo(CA_A, "atlas").allowed

    def test_any_certificate_policy_is_not_consulted(self) -> None:
        policy_set = AuthenticationProfilePolicySet(
            vo_profile_policies={"atlas": _policy(SLCS)},
            any_certificate_profile_policy=_policy(CLASSIC),
        )
        pdp = AuthenticationProfilePDP(_repository(CLASSIC, SLCS), _provider(policy_set))

        assert not pdp.is_ca_allowed_for_vo(CA_A, "atlas").allowed

    def test_unknown_ca_is_trust_error(self, scenario_pdp: AuthenticationProfilePDP) -> None:
        with pytest.raises(AuthenticationProfileError):
            scenario_pdp.is_ca_allowed_for_vo(CA_C, "atlas")

    def test_none_vo_name(self, scenario_pdp: AuthenticationProfilePDP) -> None:
        with pytest.raises(ValueError):
            scenario_pdp.is_ca_allowed_for_vo(CA_A, None)  # type: ignore[arg-type]

    def test_single_snapshot_per_call(self) -> None:
        """
        GIVEN a policy provider
        WHEN one VO decision is made
        THEN the policy set is fetched exactly once.
        """
        provider = _provider(AuthenticationProfilePolicySet(any_vo_profile_policy=_policy(CLASSIC)))
        pdp = AuthenticationProfilePDP(_repository(CLASSIC), provider)

        pdp.is_ca_allowed_for_vo(CA_A, "atlas")

        provider.get.assert_called_once()
