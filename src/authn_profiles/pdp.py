"""
Authentication profile PDP — may a certificate issued by this CA be used?

Decision algorithm (stateless given the profile repository and the current
policy set; one policy-set snapshot is used for the whole call):

  is_ca_allowed(ca)
    1. profiles = repository.find_profiles_for_subject(ca); empty → AuthenticationProfileError
    2. "-" policy present → Allow(first accepted profile) or Deny
    3. no "-" policy     → Deny

  is_ca_allowed_for_vo(ca, vo)
    1. same lookup, same failure
    2. VO policy present and accepting → Allow (VO policy wins)
    3. otherwise the "/*" policy decides, even after a VO policy denied
    4. neither present   → Deny

An unknown CA is a trust-configuration error, never a Deny.
"""

from __future__ import annotations

from cryptography import x509

import structlog

from authn_profiles.adapters.dn import canonical_principal
from authn_profiles.domain.errors import AuthenticationProfileError
from authn_profiles.domain.models import (
    AuthenticationProfile,
    AuthenticationProfilePolicy,
    Decision,
)
from authn_profiles.domain.ports import PolicySetProvider, ProfileRepository

log = structlog.get_logger()


class AuthenticationProfilePDP:
    """Implements the AuthenticationProfileDecisionPoint port."""

    def __init__(
        self,
        profile_repository: ProfileRepository,
        policy_repository: PolicySetProvider,
    ) -> None:
        self._profiles = profile_repository
        self._policies = policy_repository

    def is_ca_allowed(self, principal: str | x509.Name) -> Decision:
        """Decide for a request that asserts no VO."""
        ca_subject = self._normalize(principal)
        profiles = self._lookup_profiles(ca_subject)
        policy = self._policies.get().any_certificate_profile_policy
        decision = _evaluate(policy, ca_subject, profiles)
        log.debug(
            "pdp.decision",
            principal=ca_subject,
            vo=None,
            allowed=decision.allowed,
            profile=decision.profile_alias,
        )
        return decision

    def is_ca_allowed_for_vo(self, principal: str | x509.Name, vo_name: str) -> Decision:
        """Decide for a request asserting membership in `vo_name`."""
        if vo_name is None:
            raise ValueError("Please provide a non-null vo name")

        ca_subject = self._normalize(principal)
        profiles = self._lookup_profiles(ca_subject)
        policy_set = self._policies.get()

        decision = Decision.deny(ca_subject)
        vo_policy = policy_set.policy_for_vo(vo_name)
        if vo_policy is not None:
            decision = _evaluate(vo_policy, ca_subject, profiles)

        if not decision.allowed and policy_set.any_vo_profile_policy is not None:
            decision = _evaluate(policy_set.any_vo_profile_policy, ca_subject, profiles)

        log.debug(
            "pdp.decision",
            principal=ca_subject,
            vo=vo_name,
            allowed=decision.allowed,
            profile=decision.profile_alias,
        )
        return decision

    def _normalize(self, principal: str | x509.Name) -> str:
        if principal is None:
            raise ValueError("Please provide a non-null principal")
        try:
            return canonical_principal(principal)
        except ValueError as e:
            raise AuthenticationProfileError(
                f"No authentication profile found for X500 principal: {principal}",
                principal=str(principal),
            ) from e

    def _lookup_profiles(self, ca_subject: str) -> frozenset[AuthenticationProfile]:
        profiles = self._profiles.find_profiles_for_subject(ca_subject)
        if not profiles:
            log.warning("pdp.unknown_ca", principal=ca_subject)
            raise AuthenticationProfileError(
                f"No authentication profile found for X500 principal: {ca_subject}",
                principal=ca_subject,
            )
        return profiles


def _evaluate(
    policy: AuthenticationProfilePolicy | None,
    ca_subject: str,
    profiles: frozenset[AuthenticationProfile],
) -> Decision:
    if policy is None:
        return Decision.deny(ca_subject)
    matched = policy.supports_at_least_one_profile(profiles)
    if matched is None:
        return Decision.deny(ca_subject)
    return Decision.allow(ca_subject, matched)
