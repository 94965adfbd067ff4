"""Subject Distinguished Name assembly and validation."""

import re
from dataclasses import dataclass

from cryptography import x509
from cryptography.x509 import oid

from cert_provisioning.lib.errors import InvalidField

COUNTRY_PATTERN = re.compile(r"[A-Z]{2}")
TEXT_PATTERN = re.compile(r"[A-Za-z0-9\s.,'-]{1,64}")
EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)*\.[A-Za-z]{2,}")


@dataclass(frozen=True)
class SubjectIdentity:
    """X.509 subject fields shared by every certificate in a provisioning run.

    Only country is required. Absent optional fields are None and are left out
    of the generated name entirely.
    """

    country: str
    state: str | None = None
    locality: str | None = None
    organization: str | None = None
    organizational_unit: str | None = None
    email: str | None = None

    def to_x509_name(self, common_name: str) -> x509.Name:
        """Convert to cryptography x509.Name with the given CN appended last."""
        attributes = [x509.NameAttribute(oid.NameOID.COUNTRY_NAME, self.country)]
        optional = [
            (oid.NameOID.STATE_OR_PROVINCE_NAME, self.state),
            (oid.NameOID.LOCALITY_NAME, self.locality),
            (oid.NameOID.ORGANIZATION_NAME, self.organization),
            (oid.NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
            (oid.NameOID.EMAIL_ADDRESS, self.email),
        ]
        attributes.extend(x509.NameAttribute(name_oid, value) for name_oid, value in optional if value)
        attributes.append(x509.NameAttribute(oid.NameOID.COMMON_NAME, common_name))
        return x509.Name(attributes)

    def describe(self) -> list[str]:
        """Return the present fields as ``KEY=value`` lines for display."""
        pairs = [
            ("C", self.country),
            ("ST", self.state),
            ("L", self.locality),
            ("O", self.organization),
            ("OU", self.organizational_unit),
            ("emailAddress", self.email),
        ]
        return [f"{key}={value}" for key, value in pairs if value]


def validate_country(value: str) -> str:
    if not COUNTRY_PATTERN.fullmatch(value):
        raise InvalidField("country", value, "expected a 2-letter upper-case country code")
    return value


def validate_text(field: str, value: str) -> str:
    """Check a free-text DN field: 1-64 chars of letters, digits, spaces and . , ' -"""
    if not TEXT_PATTERN.fullmatch(value):
        raise InvalidField(
            field,
            value,
            "expected 1-64 characters using letters, numbers, spaces and . , ' -",
        )
    return value


def validate_email(value: str) -> str:
    if not EMAIL_PATTERN.fullmatch(value):
        raise InvalidField("email", value, "expected local@domain.tld")
    return value


def _present(value: str | None) -> bool:
    return value is not None and value != ""


def assemble_identity(
    country: str,
    state: str | None = None,
    locality: str | None = None,
    organization: str | None = None,
    organizational_unit: str | None = None,
    email: str | None = None,
) -> SubjectIdentity:
    """Validate raw DN values and build a SubjectIdentity.

    None or an empty string marks a field as absent.

    Raises:
        InvalidField: Naming the first field that failed validation
    """
    validate_country(country)

    text_fields = {
        "state": state,
        "locality": locality,
        "organization": organization,
        "organizational_unit": organizational_unit,
    }
    cleaned: dict[str, str | None] = {}
    for name, value in text_fields.items():
        cleaned[name] = validate_text(name, value) if _present(value) else None

    return SubjectIdentity(
        country=country,
        email=validate_email(email) if _present(email) else None,
        **cleaned,
    )
