"""Tests for the host-facing connector surface."""

from unittest.mock import patch

import pytest

from partner_import.connector import PartnerCenterConnector
from partner_import.errors import ConfigurationError, InvalidState
from partner_import.schema import CAPABILITIES

from .conftest import FakePartnerCenter, make_customers, make_response, make_users


def _connector(**fake_kwargs):
    customers = make_customers(2)
    users = {c["id"]: make_users(c["id"], 1) for c in customers}
    http = FakePartnerCenter(customers, users, **fake_kwargs)
    return PartnerCenterConnector(http=http), http


def test_full_import_through_connector(parameters):
    connector, _ = _connector()
    session = connector.open_session(parameters)

    batches = []
    while True:
        batch = connector.pull(session)
        batches.append(batch)
        if not batch.more:
            break
    connector.close_session(session)

    assert [len(b) for b in batches] == [2, 1, 1]


@pytest.mark.parametrize("missing", ["AppId", "AppSecret", "Username", "Password"])
def test_open_session_without_parameter_is_fatal(parameters, missing):
    connector, http = _connector()
    del parameters[missing]

    with pytest.raises(ConfigurationError, match=missing):
        connector.open_session(parameters)
    http.post.assert_not_called()


def test_owned_secrets_are_cleared_on_close(parameters):
    connector, _ = _connector()
    session = connector.open_session(parameters)
    _, owned = connector._open[session.session_id]
    assert bytes(owned.password.buffer) == b"p@ss word"

    connector.close_session(session)
    assert len(owned.password) == 0
    assert len(owned.app_secret) == 0


def test_caller_config_is_left_intact(connector_config):
    connector, _ = _connector()
    session = connector.open_session(connector_config)
    connector.close_session(session)

    assert bytes(connector_config.app_secret.buffer) == b"app-secret"
    assert bytes(connector_config.password.buffer) == b"p@ss word"


def test_pull_after_close_is_invalid(connector_config):
    connector, _ = _connector()
    session = connector.open_session(connector_config)
    connector.close_session(session)

    with pytest.raises(InvalidState):
        connector.pull(session)
    with pytest.raises(InvalidState):
        connector.close_session(session)


def test_pull_without_session_is_invalid():
    connector, _ = _connector()
    with pytest.raises(InvalidState):
        connector.pull(None)


def test_session_from_another_connector_is_rejected(connector_config):
    first, _ = _connector()
    second, _ = _connector()
    session = first.open_session(connector_config)

    with pytest.raises(InvalidState):
        second.pull(session)


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------


def test_validate_accepts_working_credentials(parameters):
    connector, http = _connector()
    result = connector.validate_config_parameters(parameters)
    assert result.ok
    http.post.assert_called_once()


def test_validate_reports_rejected_credentials(parameters):
    connector, http = _connector()
    http.post.side_effect = None
    http.post.return_value = make_response(
        400, {"error": "invalid_grant", "error_description": "AADSTS50126: bad password"}
    )

    result = connector.validate_config_parameters(parameters)
    assert not result.ok
    assert "AADSTS50126" in result.error_message


def test_validate_reports_missing_parameter(parameters):
    connector, http = _connector()
    parameters["Username"] = ""

    result = connector.validate_config_parameters(parameters)
    assert not result.ok
    assert "Username" in result.error_message
    http.post.assert_not_called()


def test_validate_reports_unreadable_secret_reference(parameters):
    from botocore.exceptions import ClientError

    connector, http = _connector()
    parameters["AppSecret"] = "aws-secret://partner/app#secret"
    denied = ClientError(
        {"Error": {"Code": "AccessDeniedException", "Message": "denied"}}, "GetSecretValue"
    )

    with patch("boto3.client", side_effect=denied):
        result = connector.validate_config_parameters(parameters)
    assert not result.ok
    assert "partner/app" in result.error_message
    http.post.assert_not_called()


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------


def test_schema_declares_customer_and_user_types():
    connector = PartnerCenterConnector()
    customer, user = connector.get_schema()

    assert customer.name == "customer"
    assert customer.anchor.name == "objectID"
    assert customer.attribute_names() == ["objectID", "companyName", "domain", "tenantId"]
    assert user.name == "user"
    assert "company" in user.attribute_names()
    assert "userPrincipalName" in user.attribute_names()


def test_capabilities_are_import_only():
    connector = PartnerCenterConnector()
    assert connector.capabilities is CAPABILITIES
    assert connector.capabilities.full_export is False
    assert connector.capabilities.object_rename is False


def test_secret_parameters_are_marked_encrypted():
    params = {p.name: p.encrypted for p in PartnerCenterConnector().get_config_parameters()}
    assert params == {"AppId": False, "AppSecret": True, "Username": False, "Password": True}
