"""
Shared test fixtures and helpers for the authn-profiles test suite.

Provides path resolution for the IGTF-style fixture files (trust-anchors
directory with policy-igtf-*.info profiles, VO-CA-AP policy files) and
factories writing ad-hoc info/policy files under tmp_path.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
import structlog

FIXTURES_DIR = Path(__file__).parent / "fixtures"
TRUST_ANCHORS_DIR = FIXTURES_DIR / "certificates"
VO_CA_AP_DIR = FIXTURES_DIR / "vo-ca-ap"


@pytest.fixture(autouse=True)
def _reset_structlog() -> None:
    """Undo configure_structlog() calls made by earlier tests (cached loggers included)."""
    structlog.reset_defaults()


@pytest.fixture()
def fixtures_dir() -> Path:
    """Return the absolute path to the test fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture()
def trust_anchors_dir() -> Path:
    """Trust-anchors directory holding the four IGTF profiles and one CA info file."""
    return TRUST_ANCHORS_DIR


@pytest.fixture()
def vo_ca_ap_file() -> Callable[[str], Path]:
    """Resolve a VO-CA-AP fixture by name, failing loudly if it is missing."""

    def _resolve(name: str) -> Path:
        path = VO_CA_AP_DIR / name
        if not path.exists():
            raise FileNotFoundError(f"Test fixture not found: {path}")
        return path

    return _resolve


@pytest.fixture()
def write_info_file(tmp_path: Path) -> Callable[..., Path]:
    """
    Write `<alias>.info` under tmp_path/certificates with the given OpenSSL subjects.

    Extra keyword arguments become extra properties; pass subjects=None to omit
    the subjectdn line.
    """
    directory = tmp_path / "certificates"
    directory.mkdir(exist_ok=True)

    def _write(
        alias: str,
        subjects: list[str] | None,
        filename: str | None = None,
        **extra: str,
    ) -> Path:
        lines = [f"alias = {alias}"]
        if subjects is not None:
            quoted = ", \\\n    ".join(f'"{s}"' for s in subjects)
            lines.append(f"subjectdn = {quoted}")
        lines.extend(f"{key} = {value}" for key, value in extra.items())
        path = directory / (filename or f"{alias}.info")
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def write_policy_file(tmp_path: Path) -> Callable[[str], Path]:
    """Write a VO-CA-AP file under tmp_path with the given content."""

    def _write(content: str, name: str = "vo-ca-ap") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
