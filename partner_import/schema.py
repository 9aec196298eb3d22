"""Schema, capabilities and connectivity parameters declared to the host."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from partner_import.config import APP_ID, APP_SECRET, PASSWORD, USERNAME
from partner_import.models import CUSTOMER, USER
from partner_import.transform import IDENTITY_ATTRIBUTE


@dataclass(frozen=True)
class SchemaAttribute:
    name: str
    data_type: str = "string"
    anchor: bool = False
    multivalued: bool = False


@dataclass(frozen=True)
class SchemaType:
    name: str
    attributes: tuple[SchemaAttribute, ...]

    @property
    def anchor(self) -> SchemaAttribute:
        return next(a for a in self.attributes if a.anchor)

    def attribute_names(self) -> list[str]:
        return [a.name for a in self.attributes]


def _single_valued(*names: str) -> tuple[SchemaAttribute, ...]:
    return tuple(SchemaAttribute(name) for name in names)


CUSTOMER_TYPE = SchemaType(
    CUSTOMER,
    (SchemaAttribute(IDENTITY_ATTRIBUTE, anchor=True),)
    + _single_valued("companyName", "domain", "tenantId"),
)

USER_TYPE = SchemaType(
    USER,
    (SchemaAttribute(IDENTITY_ATTRIBUTE, anchor=True),)
    + _single_valued(
        "company",
        "displayName",
        "firstName",
        "lastName",
        "usageLocation",
        "userPrincipalName",
    ),
)


def get_schema() -> tuple[SchemaType, ...]:
    return (CUSTOMER_TYPE, USER_TYPE)


@dataclass(frozen=True)
class Capabilities:
    concurrent_operation: bool = True
    delete_add_as_replace: bool = True
    delta_import: bool = True
    distinguished_name_style: str = "generic"
    export_password_in_first_pass: bool = False
    export_type: str = "attribute_replace"
    full_export: bool = False
    no_reference_values_in_first_export: bool = True
    normalizations: str = "none"
    object_confirmation: str = "normal"
    object_rename: bool = False


CAPABILITIES = Capabilities()


@dataclass(frozen=True)
class ConfigParameterDefinition:
    name: str
    encrypted: bool = False
    default: str = ""


def get_config_parameters() -> list[ConfigParameterDefinition]:
    """Connectivity parameters the host must collect."""
    return [
        ConfigParameterDefinition(APP_ID),
        ConfigParameterDefinition(APP_SECRET, encrypted=True),
        ConfigParameterDefinition(USERNAME),
        ConfigParameterDefinition(PASSWORD, encrypted=True),
    ]


@dataclass(frozen=True)
class ParameterValidationResult:
    ok: bool = True
    error_message: str = ""
    error_parameter: str = ""


def schema_as_dict() -> dict[str, Any]:
    return {
        "types": [
            {
                "name": t.name,
                "attributes": [
                    {
                        "name": a.name,
                        "type": a.data_type,
                        "anchor": a.anchor,
                        "multivalued": a.multivalued,
                    }
                    for a in t.attributes
                ],
            }
            for t in get_schema()
        ],
        "capabilities": asdict(CAPABILITIES),
        "parameters": [
            {"name": p.name, "encrypted": p.encrypted} for p in get_config_parameters()
        ],
    }
