"""
Info file parser — one trust-anchor *.info file → AuthenticationProfile.

IGTF distributions ship one info file per profile, e.g. policy-igtf-classic.info:

    alias = policy-igtf-classic
    subjectdn = "/C=IT/O=INFN/CN=INFN Certification Authority", \\
                "/DC=ch/DC=cern/CN=CERN Trusted Certification Authority"

Only `alias` and `subjectdn` matter here; other keys (version, requires, ...)
are ignored. Subjects are stored in canonical RFC 2253 form.

Implements the ProfileInfoParser port.
"""

from __future__ import annotations

from os import PathLike

import structlog

from authn_profiles.adapters.dn import convert_ca_subjects
from authn_profiles.adapters.properties import as_mapping, check_readable_file, read_properties
from authn_profiles.domain.errors import InvalidConfigurationError, ParseError
from authn_profiles.domain.models import AuthenticationProfile

log = structlog.get_logger()

ALIAS_KEY = "alias"
SUBJECT_DN_KEY = "subjectdn"


class InfoFileParser:
    """Parse IGTF-style info files into AuthenticationProfile values."""

    def parse(self, path: str | PathLike[str]) -> AuthenticationProfile:
        """
        Parse `path` into a profile.

        Raises:
            InvalidConfigurationError: the file is missing, not regular, not
                readable, or lacks the `alias` or `subjectdn` key.
            ParseError: a subject DN cannot be converted.
        """
        source = check_readable_file(path)
        properties = as_mapping(read_properties(source))

        alias = properties.get(ALIAS_KEY, "").strip()
        if not alias:
            raise InvalidConfigurationError(f"Property '{ALIAS_KEY}' not found in file '{source}'")

        if SUBJECT_DN_KEY not in properties:
            raise InvalidConfigurationError(
                f"Property '{SUBJECT_DN_KEY}' not found in file '{source}'"
            )

        try:
            subjects = convert_ca_subjects(properties[SUBJECT_DN_KEY])
        except ValueError as e:
            raise ParseError(f"Invalid '{SUBJECT_DN_KEY}' in file '{source}': {e}") from e

        log.debug("info_file.parsed", file=str(source), alias=alias, subjects=len(subjects))
        return AuthenticationProfile(alias=alias, ca_subjects=subjects)
