"""Tests for the record -> change entry mapping."""

import pytest

from partner_import.errors import InvalidArgument
from partner_import.models import Customer, User
from partner_import.transform import attribute_name, to_change_entry


def test_empty_fields_are_omitted_and_id_is_not_duplicated():
    entry = to_change_entry(Customer(id="abc", company_name="Contoso", domain=""))

    assert entry.dn == "abc"
    assert entry.object_type == "customer"
    assert entry.modification_type == "add"
    assert entry.attributes == (("objectID", "abc"), ("companyName", "Contoso"))


def test_customer_attributes_follow_declared_order():
    entry = to_change_entry(Customer("c1", "Contoso", "contoso.onmicrosoft.com", "t1"))
    assert [name for name, _ in entry.attributes] == ["objectID", "companyName", "domain", "tenantId"]


def test_user_extra_attributes_are_appended():
    user = User(
        id="u1",
        customer_id="c1",
        display_name="Ada Lovelace",
        first_name="Ada",
        last_name="Lovelace",
        usage_location="GB",
        user_principal_name="ada@contoso.com",
    )
    entry = to_change_entry(user, {"company": "Contoso"})

    assert entry.object_type == "user"
    assert entry.attributes == (
        ("objectID", "u1"),
        ("displayName", "Ada Lovelace"),
        ("firstName", "Ada"),
        ("lastName", "Lovelace"),
        ("usageLocation", "GB"),
        ("userPrincipalName", "ada@contoso.com"),
        ("company", "Contoso"),
    )
    assert entry.get("company") == "Contoso"


def test_owning_customer_id_is_not_an_attribute():
    entry = to_change_entry(User(id="u1", customer_id="c1"))
    assert entry.attributes == (("objectID", "u1"),)


def test_change_entry_is_immutable():
    entry = to_change_entry(Customer(id="abc"))
    with pytest.raises(AttributeError):
        entry.dn = "other"


@pytest.mark.parametrize(
    "field_name,expected",
    [
        ("domain", "domain"),
        ("company_name", "companyName"),
        ("user_principal_name", "userPrincipalName"),
        ("Tenant_id", "tenantId"),
    ],
)
def test_attribute_name_casing(field_name, expected):
    assert attribute_name(field_name) == expected


def test_missing_record_is_invalid():
    with pytest.raises(InvalidArgument):
        to_change_entry(None)


def test_record_without_id_is_invalid():
    with pytest.raises(InvalidArgument):
        to_change_entry(Customer(id=""))


def test_to_dict():
    entry = to_change_entry(Customer(id="abc", company_name="Contoso"), [("source", "partner")])
    assert entry.to_dict() == {
        "dn": "abc",
        "object_type": "customer",
        "modification_type": "add",
        "attributes": {"objectID": "abc", "companyName": "Contoso", "source": "partner"},
    }
