"""
Reloadable policy-set repository — the policy set currently in effect.

Implements the PolicySetProvider port. Reload is fail-safe:

    builder.build() ──Success──→ swap under write lock ──→ Result[PolicySet]
          │
          └──Failure──→ previous policy set untouched ──→ Result (failure)

The rebuild runs without holding the read/write lock, so evaluations keep
reading the old set until the swap. Concurrent reloads are serialized.
"""

from __future__ import annotations

import threading

import structlog
from railway import ErrorCode
from railway.result import Result

from authn_profiles.adapters.locking import Snapshot
from authn_profiles.domain.errors import error_code_for
from authn_profiles.domain.models import AuthenticationProfilePolicySet
from authn_profiles.domain.ports import PolicySetBuilder

log = structlog.get_logger()


class PolicySetRepository:
    """
    Holds the current AuthenticationProfilePolicySet built by a PolicySetBuilder.

    The first build happens in the constructor and raises on failure; later
    builds go through reload() and never raise.
    """

    def __init__(self, builder: PolicySetBuilder) -> None:
        self._builder = builder
        self._reload_lock = threading.Lock()
        self._snapshot: Snapshot[AuthenticationProfilePolicySet] = Snapshot(builder.build())

    def get(self) -> AuthenticationProfilePolicySet:
        return self._snapshot.get()

    def reload(self) -> Result[AuthenticationProfilePolicySet]:
        """Rebuild the policy set, keeping the current one if the build fails."""
        with self._reload_lock:
            return (
                Result.from_computation(
                    self._builder.build,
                    ErrorCode.PARSE_ERROR,
                    "Failed to reload VO-CA-AP policies",
                    classify=error_code_for,
                )
                .peek(self._publish)
                .peek_failure(
                    lambda err: log.error(
                        "policy_set.reload_failed", code=err.code.value, error=err.message
                    )
                )
            )

    def _publish(self, policy_set: AuthenticationProfilePolicySet) -> None:
        self._snapshot.swap(policy_set)
        log.info(
            "policy_set.reloaded",
            vo_policies=len(policy_set.vo_profile_policies),
            any_vo=policy_set.any_vo_profile_policy is not None,
            any_certificate=policy_set.any_certificate_profile_policy is not None,
        )
