"""
Authentication profile PIP — enforce the VO-CA-AP policy on an authorization request.

A policy information point runs before the policy decision proper and may
rewrite the request. This one:

  1. finds the end-entity certificate issuer among the subject attributes
     (DCI-SEC id first, then gLite); none → request untouched
  2. if a VO is asserted, asks the PDP whether the CA is allowed for that VO
       allow → adds the authentication-profile attribute, done
       deny  → strips every VO attribute (VO, groups, roles, FQANs)
  3. asks the PDP whether the CA is allowed as plain certificate
       allow → adds the authentication-profile attribute
       deny  → strips the X.509 subject attributes

AuthenticationProfileError from the PDP propagates: an unknown CA is an
evaluation error, not a rewrite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import structlog

from authn_profiles.domain.models import Decision
from authn_profiles.domain.ports import AuthenticationProfileDecisionPoint

log = structlog.get_logger()

# ──────────────────────── XACML identifiers ────────────────────────

DATATYPE_STRING = "http://www.w3.org/2001/XMLSchema#string"
DATATYPE_X500_NAME = "urn:oasis:names:tc:xacml:1.0:data-type:x500Name"
DATATYPE_FQAN = "http://glite.org/xacml/datatype/fqan"

ID_ATTRIBUTE_SUBJECT_ID = "urn:oasis:names:tc:xacml:1.0:subject:subject-id"

DCI_SEC_PROFILE_ID = "http://dci-sec.org/xacml/attribute/profile-id"
DCI_SEC_X509_SUBJECT_ISSUER = "http://dci-sec.org/xacml/attribute/x509-subject-issuer"
DCI_SEC_SUBJECT_ISSUER = "http://dci-sec.org/xacml/attribute/subject-issuer"
DCI_SEC_X509_AUTHN_PROFILE = "http://dci-sec.org/xacml/attribute/x509-authn-profile"
DCI_SEC_VIRTUAL_ORGANIZATION = "http://dci-sec.org/xacml/attribute/virtual-organization"
DCI_SEC_GROUP = "http://dci-sec.org/xacml/attribute/group"
DCI_SEC_PRIMARY_GROUP = "http://dci-sec.org/xacml/attribute/group/primary"
DCI_SEC_ROLE = "http://dci-sec.org/xacml/attribute/role"
DCI_SEC_PRIMARY_ROLE = "http://dci-sec.org/xacml/attribute/role/primary"

GLITE_PROFILE_ID = "http://glite.org/xacml/attribute/profile-id"
GLITE_X509_SUBJECT_ISSUER = "http://glite.org/xacml/attribute/x509-subject-issuer"
GLITE_SUBJECT_ISSUER = "http://glite.org/xacml/attribute/subject-issuer"
GLITE_X509_AUTHN_PROFILE = "http://glite.org/xacml/attribute/x509-authn-profile"
GLITE_VIRTUAL_ORGANIZATION = "http://glite.org/xacml/attribute/virtual-organization"
GLITE_FQAN = "http://glite.org/xacml/attribute/fqan"
GLITE_PRIMARY_FQAN = "http://glite.org/xacml/attribute/fqan/primary"

# (id, datatype) pairs, in lookup priority order
X509_ISSUER_ATTRIBUTES = (
    (DCI_SEC_X509_SUBJECT_ISSUER, DATATYPE_X500_NAME),
    (GLITE_X509_SUBJECT_ISSUER, DATATYPE_X500_NAME),
)
VO_NAME_ATTRIBUTES = (
    (DCI_SEC_VIRTUAL_ORGANIZATION, DATATYPE_STRING),
    (GLITE_VIRTUAL_ORGANIZATION, DATATYPE_STRING),
)

VO_ATTRIBUTE_IDS = frozenset(
    {
        DCI_SEC_VIRTUAL_ORGANIZATION,
        DCI_SEC_GROUP,
        DCI_SEC_PRIMARY_GROUP,
        DCI_SEC_ROLE,
        DCI_SEC_PRIMARY_ROLE,
        GLITE_FQAN,
        GLITE_PRIMARY_FQAN,
    }
)
X509_SUBJECT_ATTRIBUTE_IDS = frozenset(
    {
        ID_ATTRIBUTE_SUBJECT_ID,
        DCI_SEC_X509_SUBJECT_ISSUER,
        DCI_SEC_SUBJECT_ISSUER,
        DCI_SEC_X509_AUTHN_PROFILE,
        GLITE_X509_SUBJECT_ISSUER,
        GLITE_X509_AUTHN_PROFILE,
    }
)


# ──────────────────────── Request model ────────────────────────


@dataclass(slots=True)
class Attribute:
    id: str
    datatype: str = DATATYPE_STRING
    values: list[str] = field(default_factory=list)

    def first_value(self) -> str | None:
        return self.values[0] if self.values else None


@dataclass(slots=True)
class Subject:
    attributes: list[Attribute] = field(default_factory=list)


@dataclass(slots=True)
class Environment:
    attributes: list[Attribute] = field(default_factory=list)


@dataclass(slots=True)
class Request:
    """Mutable authorization request; the PIP edits it in place."""

    subjects: list[Subject] = field(default_factory=list)
    environment: Environment | None = None


class XacmlProfile(Enum):
    UNKNOWN = "unknown"
    GLITE = "glite"
    DCI_SEC = "dci-sec"


def resolve_xacml_profile(request: Request) -> XacmlProfile:
    """Which XACML profile the request follows, from the environment profile-id attribute."""
    if request.environment is None:
        return XacmlProfile.UNKNOWN
    ids = {a.id for a in request.environment.attributes}
    if DCI_SEC_PROFILE_ID in ids:
        return XacmlProfile.DCI_SEC
    if GLITE_PROFILE_ID in ids:
        return XacmlProfile.GLITE
    return XacmlProfile.UNKNOWN


def _find_first_value(request: Request, candidates: tuple[tuple[str, str], ...]) -> str | None:
    for attribute_id, datatype in candidates:
        for subject in request.subjects:
            for attribute in subject.attributes:
                if attribute.id == attribute_id and attribute.datatype == datatype:
                    return attribute.first_value()
    return None


def _remove_attributes(request: Request, ids: frozenset[str]) -> bool:
    modified = False
    for subject in request.subjects:
        kept = [a for a in subject.attributes if a.id not in ids]
        if len(kept) != len(subject.attributes):
            log.debug(
                "pip.attributes_removed",
                ids=sorted({a.id for a in subject.attributes if a.id in ids}),
            )
            subject.attributes[:] = kept
            modified = True
    return modified


class AuthenticationProfilePIP:
    """Rewrite requests according to the authentication profile decisions of `pdp`."""

    def __init__(self, pdp: AuthenticationProfileDecisionPoint) -> None:
        self._pdp = pdp

    def populate_request(self, request: Request) -> bool:
        """
        Apply the authentication profile policy to `request`.

        Returns False when the request carries no certificate issuer (left
        untouched), True otherwise.
        """
        issuer = _find_first_value(request, X509_ISSUER_ATTRIBUTES)
        if issuer is None:
            log.debug("pip.issuer_not_found")
            return False

        vo_name = _find_first_value(request, VO_NAME_ATTRIBUTES)
        if vo_name is not None:
            decision = self._pdp.is_ca_allowed_for_vo(issuer, vo_name)
            if decision.allowed:
                log.debug("pip.vo_allowed", ca=issuer, vo=vo_name, profile=decision.profile_alias)
                self._add_profile_attribute(request, decision)
                return True
            log.warning("pip.vo_denied", ca=issuer, vo=vo_name)
            _remove_attributes(request, VO_ATTRIBUTE_IDS)
        else:
            log.debug("pip.vo_not_found")

        decision = self._pdp.is_ca_allowed(issuer)
        if decision.allowed:
            log.debug("pip.ca_allowed", ca=issuer, profile=decision.profile_alias)
            self._add_profile_attribute(request, decision)
        else:
            log.warning("pip.ca_denied", ca=issuer)
            _remove_attributes(request, X509_SUBJECT_ATTRIBUTE_IDS)
        return True

    def _add_profile_attribute(self, request: Request, decision: Decision) -> None:
        alias = decision.profile_alias
        if alias is None:
            raise ValueError("Only an allow decision carries an authentication profile")
        match resolve_xacml_profile(request):
            case XacmlProfile.DCI_SEC:
                ids = [DCI_SEC_X509_AUTHN_PROFILE]
            case XacmlProfile.GLITE:
                ids = [GLITE_X509_AUTHN_PROFILE]
            case _:
                ids = [DCI_SEC_X509_AUTHN_PROFILE, GLITE_X509_AUTHN_PROFILE]
        request.subjects[0].attributes.extend(
            Attribute(id=attribute_id, datatype=DATATYPE_STRING, values=[alias])
            for attribute_id in ids
        )
