"""
Ports — Protocol-based interfaces between the decision logic and its adapters.

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing): adapters satisfy the contract by
implementing the methods, and tests can hand in a MagicMock.

Evaluation flow:
  ProfileInfoParser  → one *.info file → AuthenticationProfile
  ProfileRepository  → every profile in the trust-anchors directory, indexed
  ProfileResolver    → "file:<name>.info" token of the VO-CA-AP file → profile
  PolicySetBuilder   → VO-CA-AP file → AuthenticationProfilePolicySet
  PolicySetProvider  → current policy set (hot-swapped on reload)
  AuthenticationProfileDecisionPoint → Decision for a CA subject (+ VO)
  Reloadable         → anything rebuilt by the periodic refresh
"""

from __future__ import annotations

from os import PathLike
from typing import Any, Protocol, runtime_checkable

from railway.result import Result

from authn_profiles.domain.models import (
    AuthenticationProfile,
    AuthenticationProfilePolicySet,
    Decision,
)


@runtime_checkable
class ProfileInfoParser(Protocol):
    """Port: parse one trust-anchor info file into an AuthenticationProfile."""

    def parse(self, path: str | PathLike[str]) -> AuthenticationProfile: ...


@runtime_checkable
class ProfileRepository(Protocol):
    """
    Port: lookup of the authentication profiles loaded from the trust anchors.

    A subject maps to every profile containing it — possibly several.
    Unknown subjects yield an empty set, never None.
    """

    @property
    def profiles(self) -> tuple[AuthenticationProfile, ...]: ...

    def find_profile_by_alias(self, alias: str) -> AuthenticationProfile | None: ...

    def find_profile_by_filename(self, filename: str) -> AuthenticationProfile | None: ...

    def find_profiles_for_subject(self, principal: str) -> frozenset[AuthenticationProfile]: ...


@runtime_checkable
class ProfileResolver(Protocol):
    """
    Port: resolve the file name of a "file:<name>.info" token to a profile.

    Raises InvalidConfigurationError when the profile cannot be found.
    """

    def resolve(self, filename: str) -> AuthenticationProfile: ...


@runtime_checkable
class PolicySetBuilder(Protocol):
    """Port: build a fresh policy set from its source (raises on any error)."""

    def build(self) -> AuthenticationProfilePolicySet: ...


@runtime_checkable
class PolicySetProvider(Protocol):
    """Port: return the policy set currently in effect."""

    def get(self) -> AuthenticationProfilePolicySet: ...


@runtime_checkable
class AuthenticationProfileDecisionPoint(Protocol):
    """
    Port: render trust decisions for CA subjects.

    Both methods raise AuthenticationProfileError when the CA belongs to no
    loaded profile.
    """

    def is_ca_allowed(self, principal: str) -> Decision: ...

    def is_ca_allowed_for_vo(self, principal: str, vo_name: str) -> Decision: ...


@runtime_checkable
class Reloadable(Protocol):
    """Port: rebuild from source; on failure the previous state stays in effect."""

    def reload(self) -> Result[Any]: ...
