"""Connector settings and layered option resolution."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote_plus

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pymongo.common import VALIDATORS

logger = logging.getLogger("ormbridge.mongo.settings")

SRV_PROTOCOL = "mongodb+srv"

# MongoClient keyword arguments that are not URI options.
_CLIENT_ARGUMENTS = frozenset({"connect", "tz_aware"})


class ConnectorSettings(BaseModel):
    """Datasource-level configuration.

    Accepts both snake_case names and the camelCase keys used by the model
    framework's datasource definitions (``strictObjectIDCoercion``,
    ``allowExtendedOperators``, ...). Unknown keys the driver recognises are
    handed to the Motor client as client options.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    url: str | None = None
    protocol: str = "mongodb"
    host: str | None = Field(
        default=None, validation_alias=AliasChoices("host", "hostname")
    )
    port: int | None = None
    database: str | None = Field(
        default=None, validation_alias=AliasChoices("database", "db")
    )
    username: str | None = Field(
        default=None, validation_alias=AliasChoices("username", "user")
    )
    password: str | None = None

    strict_object_id_coercion: bool | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "strict_object_id_coercion", "strictObjectIDCoercion"
        ),
    )
    allow_extended_operators: bool | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "allow_extended_operators", "allowExtendedOperators"
        ),
    )
    disable_default_sort: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("disable_default_sort", "disableDefaultSort"),
    )
    null_as_absent: bool = Field(
        default=False,
        validation_alias=AliasChoices("null_as_absent", "nullAsAbsent"),
    )
    enable_optimised_find_or_create: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "enable_optimised_find_or_create", "enableOptimisedfindOrCreate"
        ),
    )

    server_selection_timeout_ms: int = 5000
    connect_timeout_ms: int = 10000

    @property
    def resolved_url(self) -> str:
        """The configured URL, or one generated from host/port/database."""
        return self.url or generate_mongodb_url(self)

    @property
    def client_options(self) -> dict[str, Any]:
        """Extra keys the driver accepts as client options.

        Datasource definitions also carry framework keys (``name``,
        ``connector``, ``debug``); those are dropped.
        """
        options: dict[str, Any] = {}
        for key, value in (self.model_extra or {}).items():
            if key.lower() in VALIDATORS or key in _CLIENT_ARGUMENTS:
                options[key] = value
            else:
                logger.debug("Ignoring non-driver datasource key %r", key)
        return options


def generate_mongodb_url(settings: ConnectorSettings) -> str:
    """Build ``<protocol>://[user[:password]@]<host>[:port]/<database>``.

    The port is omitted for the ``mongodb+srv`` seedlist protocol.
    """
    protocol = settings.protocol or "mongodb"
    host = settings.host or "127.0.0.1"
    database = settings.database or "test"
    credentials = ""
    if settings.username:
        credentials = quote_plus(settings.username)
        if settings.password:
            credentials += ":" + quote_plus(settings.password)
        credentials += "@"
    if protocol == SRV_PROTOCOL:
        return f"{protocol}://{credentials}{host}/{database}"
    port = settings.port or 27017
    return f"{protocol}://{credentials}{host}:{port}/{database}"


def resolve_setting(*tiers: Any, default: Any = None) -> Any:
    """Return the first tier value that is not ``None``.

    Callers list tiers in precedence order, e.g.
    ``resolve_setting(call_option, model_setting, connector_setting)``.
    """
    for value in tiers:
        if value is not None:
            return value
    return default
