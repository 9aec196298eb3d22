"""Record -> ChangeEntry mapping driven by each record kind's declared fields."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Union

from partner_import.errors import InvalidArgument
from partner_import.models import ChangeEntry, Record

IDENTITY_ATTRIBUTE = "objectID"

ExtraAttributes = Union[Mapping[str, str], Iterable[tuple[str, str]]]


def attribute_name(field_name: str) -> str:
    """company_name -> companyName; the first character is always lower-cased."""
    head, *rest = field_name.split("_")
    name = head + "".join(part[:1].upper() + part[1:] for part in rest)
    return name[:1].lower() + name[1:]


def to_change_entry(
    record: Optional[Record],
    extra_attributes: Optional[ExtraAttributes] = None,
    object_type: Optional[str] = None,
) -> ChangeEntry:
    if record is None:
        raise InvalidArgument("record is required")
    if not record.id:
        raise InvalidArgument(f"{type(record).__name__} record has no id")
    object_type = object_type or record.KIND
    if not object_type:
        raise InvalidArgument("object_type is required")

    attributes: list[tuple[str, str]] = [(IDENTITY_ATTRIBUTE, record.id)]
    for field_name in record.ATTRIBUTES:
        if field_name == "id":
            continue
        value = getattr(record, field_name)
        if not value:
            continue
        attributes.append((attribute_name(field_name), value))

    if extra_attributes:
        items = extra_attributes.items() if isinstance(extra_attributes, Mapping) else extra_attributes
        attributes.extend((name, value) for name, value in items)

    return ChangeEntry(dn=record.id, object_type=object_type, attributes=tuple(attributes))
