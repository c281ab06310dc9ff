"""
Domain models — immutable values for authentication profiles and policies.

  AuthenticationProfile        alias + the CA subjects it trusts
  AuthenticationProfilePolicy  ordered list of profiles a rule accepts
  AuthenticationProfilePolicySet
                               VO policies + the "/*" and "-" fallbacks
  Decision                     allow/deny verdict for one CA subject

CA subjects are canonical RFC 2253 strings (see adapters.dn). All models are
frozen; a policy set is replaced wholesale on reload, never mutated.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from authn_profiles.domain.errors import ParseError


@dataclass(frozen=True, slots=True, eq=False)
class AuthenticationProfile:
    """
    A named group of CA subjects sharing an assurance classification.

    Identity is the alias alone: two profiles with the same alias are equal
    whatever subjects they carry.
    """

    alias: str
    ca_subjects: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.alias:
            raise ValueError("Authentication profile alias must not be empty")
        object.__setattr__(self, "ca_subjects", frozenset(self.ca_subjects))

    def supports_subject(self, principal: str) -> bool:
        return principal in self.ca_subjects

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AuthenticationProfile):
            return self.alias == other.alias
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.alias)

    def __repr__(self) -> str:
        return f"AuthenticationProfile(alias={self.alias!r}, ca_subjects={len(self.ca_subjects)})"


@dataclass(frozen=True, slots=True)
class AuthenticationProfilePolicy:
    """
    A rule accepting an ordered list of authentication profiles.

    Repeated profiles keep their first position. Declaration order is also the
    tie-break of supports_at_least_one_profile.
    """

    rules: tuple[AuthenticationProfile, ...] = ()
    _aliases: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        unique: dict[str, AuthenticationProfile] = {}
        for profile in self.rules:
            unique.setdefault(profile.alias, profile)
        object.__setattr__(self, "rules", tuple(unique.values()))
        object.__setattr__(self, "_aliases", frozenset(unique))

    @property
    def supported_profiles(self) -> frozenset[AuthenticationProfile]:
        return frozenset(self.rules)

    @property
    def aliases(self) -> tuple[str, ...]:
        return tuple(p.alias for p in self.rules)

    def supports_profile(self, profile: str | AuthenticationProfile) -> bool:
        """Membership by alias or by profile (which compares by alias anyway)."""
        alias = profile.alias if isinstance(profile, AuthenticationProfile) else profile
        if alias is None:
            raise TypeError("profile must not be None")
        return alias in self._aliases

    def supports_at_least_one_profile(
        self,
        candidates: Iterable[AuthenticationProfile],
    ) -> AuthenticationProfile | None:
        """
        Return the candidate matched by the earliest rule, or None.

        A CA can legitimately sit in several profiles; walking the rules rather
        than the candidates keeps the answer independent of set iteration order.
        """
        by_alias = {p.alias: p for p in candidates}
        for rule in self.rules:
            if rule.alias in by_alias:
                return by_alias[rule.alias]
        return None

    def __str__(self) -> str:
        return "[" + ", ".join(self.aliases) + "]"


class RuleScope(Enum):
    """What a VO-CA-AP rule key targets."""

    ANY_CERTIFICATE = "any-certificate"
    ANY_VO = "any-vo"
    VO = "vo"


@dataclass(frozen=True, slots=True)
class PolicyRule:
    """One parsed VO-CA-AP entry, before it is folded into a policy set."""

    scope: RuleScope
    policy: AuthenticationProfilePolicy
    vo_name: str | None = None
    source_line: int | None = None

    def __post_init__(self) -> None:
        if (self.scope is RuleScope.VO) != bool(self.vo_name):
            raise ValueError("vo_name is required for VO rules and forbidden otherwise")

    @property
    def label(self) -> str:
        match self.scope:
            case RuleScope.ANY_CERTIFICATE:
                return '"-"'
            case RuleScope.ANY_VO:
                return "/*"
            case _:
                return f"/{self.vo_name}"


@dataclass(frozen=True, slots=True)
class AuthenticationProfilePolicySet:
    """
    Every policy loaded from one VO-CA-AP file.

    vo_profile_policies keeps the file's key order and is read-only.
    """

    vo_profile_policies: Mapping[str, AuthenticationProfilePolicy] = field(
        default_factory=dict
    )
    any_vo_profile_policy: AuthenticationProfilePolicy | None = None
    any_certificate_profile_policy: AuthenticationProfilePolicy | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "vo_profile_policies", MappingProxyType(dict(self.vo_profile_policies))
        )

    @classmethod
    def empty(cls) -> AuthenticationProfilePolicySet:
        return cls()

    @classmethod
    def from_rules(cls, rules: Iterable[PolicyRule]) -> AuthenticationProfilePolicySet:
        """
        Fold parsed rules into a policy set, rejecting any repeated key.

        A second "-", "/*" or identical VO key is a ParseError, never an override.
        """
        vo_policies: dict[str, AuthenticationProfilePolicy] = {}
        any_vo: AuthenticationProfilePolicy | None = None
        any_cert: AuthenticationProfilePolicy | None = None

        for rule in rules:
            match rule.scope:
                case RuleScope.ANY_CERTIFICATE:
                    if any_cert is not None:
                        raise ParseError(_duplicate_message(rule))
                    any_cert = rule.policy
                case RuleScope.ANY_VO:
                    if any_vo is not None:
                        raise ParseError(_duplicate_message(rule))
                    any_vo = rule.policy
                case RuleScope.VO:
                    vo_name = rule.vo_name
                    if not vo_name:
                        raise ValueError("A VO rule requires a VO name")
                    if vo_name in vo_policies:
                        raise ParseError(_duplicate_message(rule))
                    vo_policies[vo_name] = rule.policy

        return cls(
            vo_profile_policies=vo_policies,
            any_vo_profile_policy=any_vo,
            any_certificate_profile_policy=any_cert,
        )

    def policy_for_vo(self, vo_name: str) -> AuthenticationProfilePolicy | None:
        return self.vo_profile_policies.get(vo_name)

    @property
    def is_empty(self) -> bool:
        return (
            not self.vo_profile_policies
            and self.any_vo_profile_policy is None
            and self.any_certificate_profile_policy is None
        )


def _duplicate_message(rule: PolicyRule) -> str:
    where = f" (line {rule.source_line})" if rule.source_line is not None else ""
    return f"Duplicate {rule.label} rule in VO-CA-AP file{where}"


@dataclass(frozen=True, slots=True)
class Decision:
    """
    Verdict rendered for one CA subject.

    `profile` is set exactly when the decision allows.
    """

    principal: str
    allowed: bool
    profile: AuthenticationProfile | None = None

    def __post_init__(self) -> None:
        if self.allowed and self.profile is None:
            raise ValueError("An allow decision requires the matching profile")
        if not self.allowed and self.profile is not None:
            raise ValueError("A deny decision cannot carry a profile")

    @staticmethod
    def allow(principal: str, profile: AuthenticationProfile) -> Decision:
        return Decision(principal=principal, allowed=True, profile=profile)

    @staticmethod
    def deny(principal: str) -> Decision:
        return Decision(principal=principal, allowed=False)

    @property
    def profile_alias(self) -> str | None:
        return self.profile.alias if self.profile is not None else None
