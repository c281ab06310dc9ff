"""
Authentication profile repository — every *.info profile of the trust-anchors directory.

Adapter layer — implements the ProfileRepository port.

On construction the directory is listed, every file matching the pattern
(default "policy-*.info") is parsed, and two indexes are built:

  alias        → profile
  CA subject   → every profile listing that subject (may be more than one)

A repository is immutable once built. Re-scanning the directory means building
a new repository and publishing it through ReloadableProfileRepository, which
swaps the reference under a write lock.
"""

from __future__ import annotations

import os
import re
import threading
from collections.abc import Callable
from os import PathLike
from pathlib import Path

import structlog
from railway import ErrorCode
from railway.result import Result

from authn_profiles.adapters.dn import canonical_principal
from authn_profiles.adapters.info_parser import InfoFileParser
from authn_profiles.adapters.locking import Snapshot
from authn_profiles.domain.errors import InvalidConfigurationError, error_code_for
from authn_profiles.domain.models import AuthenticationProfile
from authn_profiles.domain.ports import ProfileInfoParser, ProfileRepository

log = structlog.get_logger()

DEFAULT_FILE_PATTERN = "policy-*.info"
INFO_FILE_SUFFIX = ".info"


def compile_file_pattern(pattern: str) -> re.Pattern[str]:
    """
    Turn a file pattern into a regex: "*" matches any run of characters,
    everything else is literal.

        >>> compile_file_pattern("policy-*.info").fullmatch("policy-igtf-classic.info") is not None
        True
    """
    if not pattern or not pattern.strip():
        raise InvalidConfigurationError("File pattern must not be empty")
    return re.compile(".*".join(re.escape(part) for part in pattern.strip().split("*")))


def _check_directory(directory: str | PathLike[str] | None) -> Path:
    if directory is None or str(directory) == "":
        raise InvalidConfigurationError("Trust anchors directory must not be empty")
    path = Path(directory)
    if not path.exists():
        raise InvalidConfigurationError(f"Directory '{path}' does not exist")
    if not path.is_dir():
        raise InvalidConfigurationError(f"'{path}' is not a directory")
    if not os.access(path, os.R_OK | os.X_OK):
        raise InvalidConfigurationError(f"Directory '{path}' is not readable")
    return path


class TrustAnchorsDirectoryRepository:
    """
    Profiles parsed from the info files of one trust-anchors directory.

    Construction either succeeds with every matching file loaded or raises
    InvalidConfigurationError / ParseError; there is no partial repository.
    """

    def __init__(
        self,
        trust_anchors_dir: str | PathLike[str],
        file_pattern: str = DEFAULT_FILE_PATTERN,
        info_parser: ProfileInfoParser | None = None,
    ) -> None:
        self._directory = _check_directory(trust_anchors_dir)
        self._file_pattern = file_pattern
        regex = compile_file_pattern(file_pattern)
        self._info_parser = info_parser or InfoFileParser()

        files = sorted(
            entry
            for entry in self._directory.iterdir()
            if regex.fullmatch(entry.name) and entry.is_file()
        )
        if not files:
            raise InvalidConfigurationError(
                f"The pattern [{file_pattern}] doesn't match any file into "
                f"directory [{self._directory}]"
            )

        by_alias: dict[str, AuthenticationProfile] = {}
        by_subject: dict[str, set[AuthenticationProfile]] = {}
        for info_file in files:
            profile = self._info_parser.parse(info_file)
            if profile.alias in by_alias:
                raise InvalidConfigurationError(
                    f"Duplicate authentication profile alias '{profile.alias}' "
                    f"in file '{info_file}'"
                )
            by_alias[profile.alias] = profile
            for subject in profile.ca_subjects:
                by_subject.setdefault(subject, set()).add(profile)
            log.debug(
                "repository.profile_loaded",
                file=info_file.name,
                alias=profile.alias,
                subjects=len(profile.ca_subjects),
            )

        self._by_alias = by_alias
        self._by_subject = {subject: frozenset(ps) for subject, ps in by_subject.items()}
        log.info(
            "repository.loaded",
            directory=str(self._directory),
            pattern=file_pattern,
            profiles=len(by_alias),
            ca_subjects=len(self._by_subject),
        )

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def file_pattern(self) -> str:
        return self._file_pattern

    @property
    def profiles(self) -> tuple[AuthenticationProfile, ...]:
        return tuple(self._by_alias.values())

    @property
    def ca_subjects(self) -> frozenset[str]:
        return frozenset(self._by_subject)

    def find_profile_by_alias(self, alias: str) -> AuthenticationProfile | None:
        return self._by_alias.get(alias)

    def find_profile_by_filename(self, filename: str) -> AuthenticationProfile | None:
        """
        Look up "policy-igtf-classic.info" as alias "policy-igtf-classic".

        Raises InvalidConfigurationError if the name doesn't end in ".info".
        """
        if not filename or not filename.endswith(INFO_FILE_SUFFIX):
            raise InvalidConfigurationError(
                f"Invalid authentication profile file name '{filename}': "
                f"expected a '{INFO_FILE_SUFFIX}' file"
            )
        return self._by_alias.get(filename[: -len(INFO_FILE_SUFFIX)])

    def find_profiles_for_subject(self, principal: str) -> frozenset[AuthenticationProfile]:
        """Every profile listing `principal`; empty when none does or it isn't a valid DN."""
        try:
            key = canonical_principal(principal)
        except ValueError:
            log.warning("repository.invalid_principal", principal=str(principal))
            return frozenset()
        return self._by_subject.get(key, frozenset())

    def __len__(self) -> int:
        return len(self._by_alias)


class ReloadableProfileRepository:
    """
    ProfileRepository whose backing repository can be rebuilt at runtime.

    Every query goes to the snapshot current at call time. `reload()` builds a
    fresh repository through `factory` outside any lock, then swaps it in; on
    failure the previous repository stays in place.
    """

    def __init__(self, factory: Callable[[], ProfileRepository]) -> None:
        self._factory = factory
        self._reload_lock = threading.Lock()
        self._snapshot: Snapshot[ProfileRepository] = Snapshot(factory())

    def get(self) -> ProfileRepository:
        return self._snapshot.get()

    def reload(self) -> Result[ProfileRepository]:
        with self._reload_lock:
            return (
                Result.from_computation(
                    self._factory,
                    ErrorCode.CONFIGURATION_ERROR,
                    "Failed to reload authentication profiles",
                    classify=error_code_for,
                )
                .peek(self._publish)
                .peek_failure(
                    lambda err: log.error(
                        "repository.reload_failed", code=err.code.value, error=err.message
                    )
                )
            )

    def _publish(self, repository: ProfileRepository) -> None:
        self._snapshot.swap(repository)
        log.info("repository.reloaded", profiles=len(repository.profiles))

    @property
    def profiles(self) -> tuple[AuthenticationProfile, ...]:
        return self.get().profiles

    def find_profile_by_alias(self, alias: str) -> AuthenticationProfile | None:
        return self.get().find_profile_by_alias(alias)

    def find_profile_by_filename(self, filename: str) -> AuthenticationProfile | None:
        return self.get().find_profile_by_filename(filename)

    def find_profiles_for_subject(self, principal: str) -> frozenset[AuthenticationProfile]:
        return self.get().find_profiles_for_subject(principal)
