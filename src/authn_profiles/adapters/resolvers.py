"""
Profile resolvers — "file:<name>.info" token of the VO-CA-AP file → profile.

Two implementations of the ProfileResolver port:

  RepositoryProfileResolver  looks the file name up in an already loaded
                             ProfileRepository (alias = name without ".info")
  InfoFileProfileResolver    parses <trust anchors dir>/<name> on demand with
                             the injected ProfileInfoParser

Both raise InvalidConfigurationError when the profile cannot be found.
"""

from __future__ import annotations

from os import PathLike
from pathlib import Path

from authn_profiles.adapters.info_parser import InfoFileParser
from authn_profiles.domain.errors import InvalidConfigurationError
from authn_profiles.domain.models import AuthenticationProfile
from authn_profiles.domain.ports import ProfileInfoParser, ProfileRepository


def _not_found(filename: str) -> InvalidConfigurationError:
    return InvalidConfigurationError(f"Authentication profile file not found: {filename}")


class RepositoryProfileResolver:
    """Resolve through a ProfileRepository (the profiles loaded at startup)."""

    def __init__(self, repository: ProfileRepository) -> None:
        self._repository = repository

    def resolve(self, filename: str) -> AuthenticationProfile:
        profile = self._repository.find_profile_by_filename(filename)
        if profile is None:
            raise _not_found(filename)
        return profile


class InfoFileProfileResolver:
    """Resolve by parsing the named info file from the trust-anchors directory."""

    def __init__(
        self,
        trust_anchors_dir: str | PathLike[str],
        info_parser: ProfileInfoParser | None = None,
    ) -> None:
        self._directory = Path(trust_anchors_dir)
        self._info_parser = info_parser or InfoFileParser()

    def resolve(self, filename: str) -> AuthenticationProfile:
        path = self._directory / filename
        if Path(filename).name != filename or not path.is_file():
            raise _not_found(filename)
        return self._info_parser.parse(path)
