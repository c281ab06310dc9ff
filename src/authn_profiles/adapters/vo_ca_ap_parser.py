"""
VO-CA-AP file parser — which authentication profiles each VO accepts.

Adapter layer — implements the PolicySetBuilder port.

The file uses `key = value` property syntax:

    # any certificate, no VO asserted
    "-"    = file:policy-igtf-classic.info, file:policy-igtf-mics.info
    # any VO not listed below
    /*     = file:policy-igtf-classic.info
    /atlas = file:policy-igtf-classic.info, file:policy-igtf-iota.info

Only "file:<name>.info" entries are supported; listing CA DNs inline is not.
Each file name is handed to the injected ProfileResolver.
"""

from __future__ import annotations

import re
from os import PathLike
from pathlib import Path

import structlog

from authn_profiles.adapters.properties import (
    PropertyEntry,
    check_readable_file,
    read_properties,
)
from authn_profiles.domain.errors import ParseError
from authn_profiles.domain.models import (
    AuthenticationProfilePolicy,
    AuthenticationProfilePolicySet,
    PolicyRule,
    RuleScope,
)
from authn_profiles.domain.ports import ProfileResolver

log = structlog.get_logger()

ANY_CERTIFICATE_KEY = '"-"'
ANY_VO_KEY = "/*"

VO_NAME_PATTERN = re.compile(r"/(\w[\w.-]+)", re.ASCII)
FILE_RULE_PATTERN = re.compile(r"file:([\w-]+\.info)", re.ASCII)
_VALUE_SEPARATOR = re.compile(r"\s*,\s*")


def scope_for_key(key: str) -> tuple[RuleScope, str | None]:
    """
    Classify a VO-CA-AP key; VO keys come back with the leading "/" stripped.

    Raises ParseError for anything that is not "-", /* or a VO name.
    """
    if key == ANY_CERTIFICATE_KEY:
        return RuleScope.ANY_CERTIFICATE, None
    if key == ANY_VO_KEY:
        return RuleScope.ANY_VO, None
    match = VO_NAME_PATTERN.fullmatch(key)
    if match is None:
        raise ParseError(f"Unsupported key in VO-CA-AP file: {key}")
    return RuleScope.VO, match.group(1)


def parse_info_file_names(value: str) -> list[str]:
    """'file:a.info, file:b.info' → ['a.info', 'b.info'] (ParseError on any other token)."""
    names: list[str] = []
    for token in _VALUE_SEPARATOR.split(value.strip()):
        match = FILE_RULE_PATTERN.fullmatch(token)
        if match is None:
            raise ParseError(f"Unrecognized VO-CA-AP policy: {value}")
        names.append(match.group(1))
    return names


class VoCaApFileParser:
    """
    Build an AuthenticationProfilePolicySet from one VO-CA-AP file.

    Every call to build() re-reads the file, so the same parser instance serves
    as the builder behind a reloadable policy-set repository.
    """

    def __init__(self, filename: str | PathLike[str], resolver: ProfileResolver) -> None:
        if filename is None:
            raise ValueError("Please set a non-null filename")
        if resolver is None:
            raise ValueError("Please set a non-null profile resolver")
        self._filename = Path(filename)
        self._resolver = resolver

    @property
    def filename(self) -> Path:
        return self._filename

    def build(self) -> AuthenticationProfilePolicySet:
        """
        Parse the file into a policy set.

        Raises:
            InvalidConfigurationError: the file is unusable or references an
                unknown info file.
            ParseError: unsupported key, malformed value or duplicate key.
        """
        log.info("vo_ca_ap.loading", file=str(self._filename))
        source = check_readable_file(self._filename)
        rules = [self._rule_for(entry) for entry in read_properties(source)]
        policy_set = AuthenticationProfilePolicySet.from_rules(rules)
        log.info(
            "vo_ca_ap.loaded",
            file=str(source),
            vo_policies=len(policy_set.vo_profile_policies),
            any_vo=policy_set.any_vo_profile_policy is not None,
            any_certificate=policy_set.any_certificate_profile_policy is not None,
        )
        return policy_set

    def _rule_for(self, entry: PropertyEntry) -> PolicyRule:
        scope, vo_name = scope_for_key(entry.key)
        profiles = [self._resolver.resolve(name) for name in parse_info_file_names(entry.value)]
        rule = PolicyRule(
            scope=scope,
            policy=AuthenticationProfilePolicy(rules=tuple(profiles)),
            vo_name=vo_name,
            source_line=entry.line,
        )
        log.debug("vo_ca_ap.rule", key=rule.label, policy=str(rule.policy), line=entry.line)
        return rule
