"""
Distinguished-name canonicalization — OpenSSL slash form → RFC 2253.

Trust-anchor info files list CA subjects the way OpenSSL prints them
(most significant RDN first, "/"-separated):

    /C=IT/O=INFN/CN=INFN Certification Authority

Lookups use the RFC 2253 / RFC 4514 form (least significant RDN first):

    CN=INFN Certification Authority,O=INFN,C=IT

Both directions go through cryptography's x509.Name so that escaping and
attribute keywords come out identical whichever form a subject arrived in.
RFC 4514 input is first normalized: blanks around "," "+" and "=" are
dropped (RFC 1779 style "CN=A, O=B") and "#" hex values, as printed for
attributes without a well-known keyword (emailAddress), are decoded from DER.
"""

from __future__ import annotations

import csv
import re

from cryptography import x509
from cryptography.x509.oid import NameOID, ObjectIdentifier

from authn_profiles.domain.errors import ParseError

# Keywords accepted in OpenSSL-style names (matched case-insensitively) and,
# as overrides, in RFC 4514 strings handed in by callers.
_ATTRIBUTE_OIDS: dict[str, ObjectIdentifier] = {
    "C": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "SP": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "CN": NameOID.COMMON_NAME,
    "DC": NameOID.DOMAIN_COMPONENT,
    "UID": NameOID.USER_ID,
    "USERID": NameOID.USER_ID,
    "STREET": NameOID.STREET_ADDRESS,
    "SN": NameOID.SURNAME,
    "GN": NameOID.GIVEN_NAME,
    "GIVENNAME": NameOID.GIVEN_NAME,
    "T": NameOID.TITLE,
    "TITLE": NameOID.TITLE,
    "SERIALNUMBER": NameOID.SERIAL_NUMBER,
    "DNQ": NameOID.DN_QUALIFIER,
    "DNQUALIFIER": NameOID.DN_QUALIFIER,
    "POSTALCODE": NameOID.POSTAL_CODE,
    "PSEUDONYM": NameOID.PSEUDONYM,
    "E": NameOID.EMAIL_ADDRESS,
    "EMAIL": NameOID.EMAIL_ADDRESS,
    "EMAILADDRESS": NameOID.EMAIL_ADDRESS,
}

_RFC4514_OVERRIDES: dict[str, ObjectIdentifier] = {
    **_ATTRIBUTE_OIDS,
    **{keyword.lower(): oid for keyword, oid in _ATTRIBUTE_OIDS.items()},
    "emailAddress": NameOID.EMAIL_ADDRESS,
    "serialNumber": NameOID.SERIAL_NUMBER,
    "givenName": NameOID.GIVEN_NAME,
}

_ATTRIBUTE_RE = re.compile(r"^\s*([A-Za-z][A-Za-z0-9-]*|\d+(?:\.\d+)+)\s*=(.*)$", re.DOTALL)


def _split_components(text: str, separator: str) -> list[str]:
    """
    Split on `separator`, gluing back pieces that don't start with "keyword=".

    OpenSSL does not escape "/" or "+" inside values, so
    "/O=Grid/CN=host/foo.example.org" keeps "host/foo.example.org" as one CN.
    """
    parts: list[str] = []
    for piece in text.split(separator):
        if parts and not _ATTRIBUTE_RE.match(piece):
            parts[-1] += separator + piece
        else:
            parts.append(piece)
    return parts


def _oid_for(keyword: str) -> ObjectIdentifier:
    if keyword[0].isdigit():
        return ObjectIdentifier(keyword)
    try:
        return _ATTRIBUTE_OIDS[keyword.upper()]
    except KeyError:
        raise ValueError(f"Unsupported attribute type '{keyword}'") from None


def _name_attribute(component: str, dn: str) -> x509.NameAttribute:
    match = _ATTRIBUTE_RE.match(component)
    if match is None:
        raise ValueError(f"Malformed RDN '{component}' in distinguished name '{dn}'")
    keyword, value = match.group(1), match.group(2).strip()
    if not value:
        raise ValueError(f"Empty value for '{keyword}' in distinguished name '{dn}'")
    return x509.NameAttribute(_oid_for(keyword), value)


def openssl_to_name(dn: str) -> x509.Name:
    """Parse an OpenSSL slash-separated DN into an x509.Name (raises ValueError)."""
    text = dn.strip()
    if not text.startswith("/"):
        raise ValueError(f"Not an OpenSSL-style distinguished name: '{dn}'")
    rdns = [
        x509.RelativeDistinguishedName(
            [_name_attribute(part, dn) for part in _split_components(component, "+")]
        )
        for component in _split_components(text[1:], "/")
    ]
    return x509.Name(rdns)


def openssl_to_rfc2253(dn: str) -> str:
    """
    Convert "/C=IT/O=INFN/CN=INFN CA" into "CN=INFN CA,O=INFN,C=IT".

    Raises ValueError for malformed names, unknown attribute keywords or
    values cryptography rejects (e.g. a country code that isn't two letters).
    """
    return openssl_to_name(dn).rfc4514_string()


def canonical_principal(principal: str | x509.Name) -> str:
    """
    Normalize a CA subject to the canonical RFC 2253 string used as index key.

    Accepts an x509.Name, an RFC 4514/2253 string or an OpenSSL slash string.
    Raises ValueError if the string cannot be parsed as a distinguished name.
    """
    if isinstance(principal, x509.Name):
        return principal.rfc4514_string()
    if principal is None:
        raise TypeError("principal must not be None")
    text = principal.strip()
    if text.startswith("/"):
        return openssl_to_rfc2253(text)
    return x509.Name.from_rfc4514_string(
        normalize_rfc4514(text), attr_name_overrides=_RFC4514_OVERRIDES
    ).rfc4514_string()


# DER universal string tags that may carry an attribute value
_DER_STRING_ENCODINGS = {
    0x0C: "utf-8",  # UTF8String
    0x13: "ascii",  # PrintableString
    0x14: "latin-1",  # TeletexString
    0x16: "ascii",  # IA5String
    0x1C: "utf-32-be",  # UniversalString
    0x1E: "utf-16-be",  # BMPString
}
_RFC4514_SPECIALS = frozenset('\\,+"<>;=')


def _split_unescaped(text: str, separators: str) -> list[str]:
    """Split on any of `separators` not preceded by a backslash escape."""
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            current.append(ch)
            escaped = True
        elif ch in separators:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _strip_value(value: str) -> str:
    """Strip blanks, keeping a trailing space protected by a backslash."""
    stripped = value.strip()
    backslashes = len(stripped) - len(stripped.rstrip("\\"))
    if backslashes % 2 and value.rstrip() != value:
        return stripped + " "
    return stripped


def decode_der_string(hex_value: str) -> str:
    """
    Decode the hex of a DER-encoded directory string ("#160c6361...").

    Raises ValueError for bad hex, a truncated encoding or a non-string tag.
    """
    try:
        der = bytes.fromhex(hex_value)
    except ValueError:
        raise ValueError(f"Invalid hex attribute value '#{hex_value}'") from None
    if len(der) < 2:
        raise ValueError(f"Truncated DER attribute value '#{hex_value}'")
    tag, length, offset = der[0], der[1], 2
    if length & 0x80:
        size = length & 0x7F
        if size == 0 or len(der) < offset + size:
            raise ValueError(f"Invalid DER length in attribute value '#{hex_value}'")
        length = int.from_bytes(der[offset : offset + size], "big")
        offset += size
    content = der[offset:]
    if len(content) != length:
        raise ValueError(f"DER length mismatch in attribute value '#{hex_value}'")
    encoding = _DER_STRING_ENCODINGS.get(tag)
    if encoding is None:
        raise ValueError(f"Unsupported DER string tag 0x{tag:02x} in '#{hex_value}'")
    return content.decode(encoding)


def _escape_rfc4514(value: str) -> str:
    escaped = "".join("\\" + ch if ch in _RFC4514_SPECIALS else ch for ch in value)
    if value.startswith(("#", " ")):
        escaped = "\\" + escaped
    if value.endswith(" ") and len(value) > 1:
        escaped = escaped[:-1] + "\\ "
    return escaped


def _normalize_attribute(component: str, dn: str) -> str:
    attr_type, separator, value = component.partition("=")
    attr_type = attr_type.strip()
    if not separator or not attr_type:
        raise ValueError(f"Malformed RDN '{component.strip()}' in distinguished name '{dn}'")
    value = _strip_value(value)
    if value.startswith("#"):
        value = _escape_rfc4514(decode_der_string(value[1:]))
    return f"{attr_type}={value}"


def normalize_rfc4514(dn: str) -> str:
    """
    Rewrite an RFC 4514/2253/1779 string into the strict form cryptography parses.

        "CN=INFN CA, O=INFN; C=IT"              → "CN=INFN CA,O=INFN,C=IT"
        "1.2.840.113549.1.9.1=#160c6361...,C=DE" → "1.2.840.113549.1.9.1=ca@...,C=DE"
    """
    return ",".join(
        "+".join(_normalize_attribute(component, dn) for component in _split_unescaped(rdn, "+"))
        for rdn in _split_unescaped(dn, ",;")
    )


def clean_property_value(value: str) -> str:
    """Drop backslashes and double quotes, then surrounding whitespace."""
    return value.replace("\\", "").replace('"', "").strip()


def split_quoted_list(value: str) -> list[str]:
    """
    Split a comma-separated list of double-quoted items, quotes removed.

    Commas inside quotes belong to the item. Raises ParseError on an
    unterminated quote.

        >>> split_quoted_list('"/C=IT/O=INFN/CN=A", "/C=DE/O=X, Inc./CN=B"')
        ['/C=IT/O=INFN/CN=A', '/C=DE/O=X, Inc./CN=B']
    """
    if value.count('"') % 2:
        raise ParseError(f"Missing end-quote in value: {value}")
    row = next(csv.reader([value], skipinitialspace=True), [])
    return [item.strip() for item in row if item.strip()]


def convert_ca_subjects(subject_dn_line: str) -> frozenset[str]:
    """
    Turn a `subjectdn` property value into canonical RFC 2253 subjects.

        '"/C=IT/O=INFN/CN=INFN CA", "/DC=ch/DC=cern/CN=CERN CA"'
        → {"CN=INFN CA,O=INFN,C=IT", "CN=CERN CA,DC=cern,DC=ch"}
    """
    return frozenset(
        openssl_to_rfc2253(clean_property_value(item))
        for item in split_quoted_list(subject_dn_line)
    )
