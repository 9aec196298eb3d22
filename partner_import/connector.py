"""Host-facing connector: open an import session, pull batches, close it."""

from __future__ import annotations

import logging
from typing import Mapping, Optional, Union

import requests

from partner_import.config import ConnectorConfig
from partner_import.errors import AuthFailure, ConfigurationError, InvalidArgument, InvalidState
from partner_import.models import ImportBatch
from partner_import.partner_center.token import TokenProvider
from partner_import.schema import (
    CAPABILITIES,
    Capabilities,
    ConfigParameterDefinition,
    ParameterValidationResult,
    SchemaType,
    get_config_parameters,
    get_schema,
)
from partner_import.session import ImportSession, ImportSessionStateMachine

logger = logging.getLogger("partner_import.connector")

Parameters = Union[Mapping[str, str], ConnectorConfig]


class PartnerCenterConnector:
    """Implements the host's open/pull/close import contract.

    When the host hands over raw parameters, the connector owns the resulting
    credential buffers and zeroes them when the session closes. A
    ConnectorConfig passed in stays owned by the caller.
    """

    def __init__(self, http: Optional[requests.Session] = None) -> None:
        self._http = http
        self._open: dict[str, tuple[ImportSessionStateMachine, Optional[ConnectorConfig]]] = {}

    @property
    def capabilities(self) -> Capabilities:
        return CAPABILITIES

    def get_schema(self) -> tuple[SchemaType, ...]:
        return get_schema()

    def get_config_parameters(self) -> list[ConfigParameterDefinition]:
        return get_config_parameters()

    def validate_config_parameters(self, parameters: Mapping[str, str]) -> ParameterValidationResult:
        """Check that the parameters are present and that the authority accepts them."""
        try:
            config = ConnectorConfig.from_parameters(parameters)
        except ConfigurationError as exc:
            return ParameterValidationResult(ok=False, error_message=str(exc))
        try:
            TokenProvider.from_config(config, session=self._http).acquire(
                config.authority, config.resource
            )
        except (AuthFailure, InvalidArgument) as exc:
            logger.warning("Connectivity parameters rejected: %s", exc)
            return ParameterValidationResult(ok=False, error_message=str(exc))
        finally:
            config.clear_secrets()
        return ParameterValidationResult()

    def open_session(self, parameters: Parameters) -> ImportSession:
        if isinstance(parameters, ConnectorConfig):
            config, owned = parameters, None
        else:
            config = ConnectorConfig.from_parameters(parameters)
            owned = config
        machine = ImportSessionStateMachine.from_config(config, http=self._http)
        try:
            session = machine.start()
        except Exception:
            if owned is not None:
                owned.clear_secrets()
            raise
        self._open[session.session_id] = (machine, owned)
        return session

    def pull(self, session: Optional[ImportSession]) -> ImportBatch:
        if session is None or session.session_id not in self._open:
            raise InvalidState("Import session is not open on this connector")
        machine, _ = self._open[session.session_id]
        return machine.pull(session)

    def close_session(self, session: ImportSession) -> None:
        entry = self._open.pop(session.session_id, None)
        if entry is None:
            raise InvalidState("Import session is not open on this connector")
        machine, owned = entry
        machine.close(session)
        if owned is not None:
            owned.clear_secrets()
