from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal

from boto3.session import Session
from botocore.config import Config as BotoConfig
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from botocore.client import BaseClient

LOG = logging.getLogger("s3_readerat.settings")


class ClientSettings(BaseSettings):
    """Connection options for the S3 clients a reader talks to."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    endpoint: str | None = Field(
        default=None,
        validation_alias="S3_READERAT_ENDPOINT",
    )
    access_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "S3_READERAT_ACCESS_KEY_ID",
            "AWS_ACCESS_KEY_ID",
        ),
    )
    secret_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "S3_READERAT_SECRET_ACCESS_KEY",
            "AWS_SECRET_ACCESS_KEY",
        ),
    )
    session_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "S3_READERAT_SESSION_TOKEN",
            "AWS_SESSION_TOKEN",
        ),
    )
    region: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "S3_READERAT_REGION",
            "AWS_REGION",
            "AWS_DEFAULT_REGION",
        ),
    )
    addressing_style: Literal["auto", "virtual", "path"] = Field(
        default="virtual",
        validation_alias="S3_READERAT_ADDRESSING_STYLE",
    )
    max_attempts: int = Field(
        default=3,
        validation_alias="S3_READERAT_MAX_ATTEMPTS",
    )
    connect_timeout: float = Field(
        default=60.0,
        validation_alias="S3_READERAT_CONNECT_TIMEOUT",
    )
    read_timeout: float = Field(
        default=300.0,
        validation_alias="S3_READERAT_READ_TIMEOUT",
    )
    readahead: int = Field(
        default=0,
        validation_alias="S3_READERAT_READAHEAD",
    )

    @field_validator("connect_timeout", "read_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            msg = "timeouts must be positive"
            raise ValueError(msg)
        return value

    @field_validator("max_attempts", "readahead")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            msg = "value must not be negative"
            raise ValueError(msg)
        return value

    def describe(self, region: str | None = None) -> str:
        endpoint = self.endpoint or "aws"
        return f"{endpoint} ({region or self.region or 'default'})"


def load_client_settings_from_env() -> ClientSettings:
    """Load S3 client settings from environment variables.

    Returns:
        ClientSettings instance populated from environment variables.
    """
    return ClientSettings()


def build_client(settings: ClientSettings, region: str | None = None) -> BaseClient:
    """Build a boto3 S3 client from ``settings``.

    Args:
        settings: Base connection options.
        region: Region to bind the client to instead of ``settings.region``.

    Returns:
        A botocore S3 client.
    """
    session = Session(
        aws_access_key_id=settings.access_key,
        aws_secret_access_key=settings.secret_key,
        aws_session_token=settings.session_token,
        region_name=region or settings.region,
    )
    config_kwargs: dict[str, Any] = {
        "signature_version": "s3v4",
        "retries": {"max_attempts": settings.max_attempts},
        "connect_timeout": settings.connect_timeout,
        "read_timeout": settings.read_timeout,
        "s3": {"addressing_style": settings.addressing_style},
    }
    LOG.debug("building S3 client for %s", settings.describe(region))
    return session.client(
        "s3",
        endpoint_url=settings.endpoint,
        config=BotoConfig(**config_kwargs),
    )
