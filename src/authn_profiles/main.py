"""
Application entry point — wires dependencies and starts the refresh scheduler.

Composition root: creates the concrete adapters and injects them into the
PDP, the PIP and the refresh job.

This is the ONLY place where concrete classes are instantiated.
Everything else depends on Protocol interfaces.

Wiring:
  TrustAnchorsDirectoryRepository (behind ReloadableProfileRepository)
    → RepositoryProfileResolver
      → VoCaApFileParser
        → PolicySetRepository
          → AuthenticationProfilePDP → AuthenticationProfilePIP
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from functools import partial

import structlog
from railway.result import Result

from authn_profiles import __version__
from authn_profiles.adapters.info_parser import InfoFileParser
from authn_profiles.adapters.policy_set_repository import PolicySetRepository
from authn_profiles.adapters.profile_repository import (
    ReloadableProfileRepository,
    TrustAnchorsDirectoryRepository,
)
from authn_profiles.adapters.resolvers import RepositoryProfileResolver
from authn_profiles.adapters.vo_ca_ap_parser import VoCaApFileParser
from authn_profiles.config import AppSettings
from authn_profiles.domain.models import AuthenticationProfilePolicySet
from authn_profiles.pdp import AuthenticationProfilePDP
from authn_profiles.pip import AuthenticationProfilePIP
from authn_profiles.refresh import refresh_repositories
from authn_profiles.scheduler import create_scheduler


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured logging.

    Colored, human-readable console output; the level filter is applied
    before any processor runs.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    # railway's execution context logs through the standard library
    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.INFO))


@dataclass(frozen=True, slots=True)
class Components:
    """Everything the CLI and the web app need, wired once."""

    profiles: ReloadableProfileRepository
    policies: PolicySetRepository
    pdp: AuthenticationProfilePDP
    pip: AuthenticationProfilePIP

    def refresh(self) -> Result[AuthenticationProfilePolicySet]:
        return refresh_repositories(self.profiles, self.policies)


def build_components(settings: AppSettings) -> Components:
    """
    Load the trust-anchor profiles and the VO-CA-AP policies, and wire the PDP.

    Raises InvalidConfigurationError or ParseError if either source is unusable:
    the service never starts on a partial configuration.
    """
    info_parser = InfoFileParser()
    profiles = ReloadableProfileRepository(
        partial(
            TrustAnchorsDirectoryRepository,
            settings.trust_anchors.directory,
            settings.trust_anchors.policy_file_pattern,
            info_parser,
        )
    )
    policies = PolicySetRepository(
        VoCaApFileParser(settings.policy.file, RepositoryProfileResolver(profiles))
    )
    pdp = AuthenticationProfilePDP(profiles, policies)
    return Components(
        profiles=profiles,
        policies=policies,
        pdp=pdp,
        pip=AuthenticationProfilePIP(pdp),
    )


def main() -> None:
    """Load settings, wire the PDP and run the periodic refresh."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()

    log.info(
        "app.starting",
        version=__version__,
        log_level=settings.log_level,
        trust_anchors=settings.trust_anchors.directory,
        policy_file=settings.policy.file,
        refresh_interval_seconds=settings.trust_anchors.refresh_interval_seconds,
        run_on_startup=settings.run_on_startup,
    )

    try:
        components = build_components(settings)
    except Exception as e:
        log.error("app.load_failed", error=str(e))
        sys.exit(1)

    interval = settings.trust_anchors.refresh_interval_seconds
    if interval <= 0:
        log.info("app.refresh_disabled", message="Configuration loaded; nothing to schedule")
        return

    scheduler = create_scheduler(
        refresh_fn=components.refresh,
        interval_seconds=interval,
        run_on_startup=settings.run_on_startup,
    )

    log.info("app.scheduler_starting", interval_seconds=interval)

    try:
        scheduler.start()
    except KeyboardInterrupt:
        log.info("app.shutdown", reason="signal received")
    except SystemExit:
        log.info("app.shutdown", reason="signal received")
        raise
    except Exception as e:
        log.error("app.fatal_error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
