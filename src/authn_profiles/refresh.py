"""
Refresh — reload the trust-anchor profiles, then the VO-CA-AP policy set.

  profiles.reload()
    → policies.reload()      (resolves file: tokens against the new profiles)

Policies are only reloaded once the profiles are; a failure at either step
short-circuits and leaves that step's previous snapshot in effect.
"""

from __future__ import annotations

from railway.result import Result

from authn_profiles.domain.models import AuthenticationProfilePolicySet
from authn_profiles.domain.ports import Reloadable


def refresh_repositories(
    profiles: Reloadable | None,
    policies: Reloadable,
) -> Result[AuthenticationProfilePolicySet]:
    """
    Reload both repositories in dependency order.

    `profiles` may be None when the profile repository is static; only the
    policy set is then reloaded.
    """
    if profiles is None:
        return policies.reload()
    return profiles.reload().flat_map(lambda _: policies.reload())
