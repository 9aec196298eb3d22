"""Cloud-native secret resolution and in-memory handling of sensitive values.

Resolves secrets from AWS Secrets Manager or GCP Secret Manager based on
the reference prefix, falling back to the literal value for local
development. Resolved app secrets and passwords are kept in SecretBuffer
objects that can be zeroed once the connector is done with them.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Union

from partner_import.errors import ConfigurationError

logger = logging.getLogger("partner_import.secrets")

# Prefixes that indicate a cloud secret reference
_AWS_PREFIX = "aws-secret://"
_GCP_PREFIX = "gcp-secret://"


class SecretBuffer:
    """Mutable UTF-8 buffer for a credential. Never rendered by repr/str."""

    __slots__ = ("_buf",)

    def __init__(self, value: Union[str, bytes, bytearray]) -> None:
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._buf = bytearray(value)

    def __len__(self) -> int:
        return len(self._buf)

    def __bool__(self) -> bool:
        return len(self._buf) > 0

    def __repr__(self) -> str:
        return "SecretBuffer(***)"

    __str__ = __repr__

    @property
    def buffer(self) -> bytearray:
        """The live buffer. Callers must not keep copies beyond one request."""
        return self._buf

    def clear(self) -> None:
        """Overwrite the buffer with zeros and release it."""
        for i in range(len(self._buf)):
            self._buf[i] = 0
        self._buf = bytearray()


def resolve_secret(value: str) -> str:
    """Resolve a secret reference to its plaintext value.

    Supported formats:
      - "aws-secret://secret-name"         -> AWS Secrets Manager
      - "aws-secret://secret-name#key"     -> AWS Secrets Manager (JSON key)
      - "gcp-secret://project/secret/ver"  -> GCP Secret Manager
      - anything else                      -> returned as-is (env var / literal)

    Secret store failures (missing secret, denied access, no credentials)
    are raised as ConfigurationError.
    """
    if value.startswith(_AWS_PREFIX):
        return _resolve_aws_secret(value[len(_AWS_PREFIX):])
    if value.startswith(_GCP_PREFIX):
        return _resolve_gcp_secret(value[len(_GCP_PREFIX):])
    return value


def resolve_secret_buffer(value: str) -> SecretBuffer:
    """Like resolve_secret(), but wraps the result for later zeroing."""
    return SecretBuffer(resolve_secret(value))


def _resolve_aws_secret(ref: str) -> str:
    """Fetch a secret from AWS Secrets Manager.

    ref format: "secret-name" or "secret-name#json_key"
    """
    import boto3
    from botocore.exceptions import BotoCoreError, ClientError

    parts = ref.split("#", 1)
    secret_name = parts[0]
    json_key = parts[1] if len(parts) > 1 else None

    region = os.environ.get("AWS_REGION", "us-east-1")
    logger.info("Resolving secret %s from AWS Secrets Manager", secret_name)
    try:
        client = boto3.client("secretsmanager", region_name=region)
        resp = client.get_secret_value(SecretId=secret_name)
    except (BotoCoreError, ClientError) as exc:
        raise ConfigurationError(
            f"Cannot read secret '{secret_name}' from AWS Secrets Manager: {exc}"
        ) from exc
    secret_string = resp["SecretString"]

    if json_key:
        try:
            data = json.loads(secret_string)
        except ValueError as exc:
            raise ConfigurationError(f"Secret '{secret_name}' is not a JSON object") from exc
        if not isinstance(data, dict) or json_key not in data:
            raise ConfigurationError(f"Key '{json_key}' not found in secret '{secret_name}'")
        return str(data[json_key])
    return secret_string


def _resolve_gcp_secret(ref: str) -> str:
    """Fetch a secret from GCP Secret Manager.

    ref format: "projects/PROJECT/secrets/NAME/versions/VERSION"
             or "NAME" (auto-resolves project from metadata + latest version)
    """
    from google.api_core.exceptions import GoogleAPIError
    from google.auth.exceptions import GoogleAuthError
    from google.cloud import secretmanager

    if ref.startswith("projects/"):
        name = ref
    else:
        project = os.environ.get("GCP_PROJECT_ID", "")
        if not project:
            project = _gcp_project_from_metadata()
        name = f"projects/{project}/secrets/{ref}/versions/latest"

    logger.info("Resolving secret %s from GCP Secret Manager", name)
    try:
        client = secretmanager.SecretManagerServiceClient()
        response = client.access_secret_version(request={"name": name})
    except (GoogleAPIError, GoogleAuthError) as exc:
        raise ConfigurationError(f"Cannot read secret '{name}' from GCP Secret Manager: {exc}") from exc
    return response.payload.data.decode("UTF-8")


def _gcp_project_from_metadata() -> str:
    """Fetch GCP project ID from the metadata server (available in Cloud Run/GCE)."""
    import requests

    try:
        resp = requests.get(
            "http://metadata.google.internal/computeMetadata/v1/project/project-id",
            headers={"Metadata-Flavor": "Google"},
            timeout=2,
        )
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ConfigurationError(
            "Cannot determine GCP project ID. Set GCP_PROJECT_ID env var."
        ) from exc
    return resp.text


def resolve_database_url() -> str:
    """Resolve DATABASE_URL from env, with cloud secret support."""
    url = os.environ.get("DATABASE_URL", "")
    if url:
        return resolve_secret(url)

    # Fall back to PG_* variables
    host = os.environ.get("PG_HOST", "localhost")
    port = os.environ.get("PG_PORT", "5432")
    user = os.environ.get("PG_USER", "partner_import")
    password = os.environ.get("PG_PASSWORD", "localdev-change-me")
    database = os.environ.get("PG_DATABASE", "identity_store")

    # Password might be a secret reference
    password = resolve_secret(password)

    return f"postgresql://{user}:{password}@{host}:{port}/{database}"
