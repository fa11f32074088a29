"""Device endpoints and environment-driven settings for btmon."""

from __future__ import annotations

import json
from typing import Annotated

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_TIMEOUT: float = 60.0
DEFAULT_INTERVAL: float = 10.0

DESCRIPTION = "Read metrics from one or many Broadcast Tools devices"

SAMPLE_CONFIG = """\
## Comma-separated (or JSON list of) device URLs to gather stats from, i.e.
##   http://example.com:3000
BTMON_SERVERS=http://localhost:8080
## Username
BTMON_USER=admin
## Password
BTMON_PASSWORD=password
"""


class Endpoint(BaseModel):
    """One configured device: base address plus the shared credential."""

    model_config = ConfigDict(frozen=True)

    url: str
    user: str
    password: str


class AppSettings(BaseSettings):
    """Application-wide settings populated from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BTMON_",
        extra="ignore",
    )

    servers: Annotated[list[str], NoDecode] = []
    user: str = "admin"
    password: str = ""
    timeout: float = DEFAULT_TIMEOUT
    interval: float = DEFAULT_INTERVAL

    @field_validator("servers", mode="before")
    @classmethod
    def _split_servers(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            if value.startswith("["):
                return json.loads(value)
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def endpoints(self) -> list[Endpoint]:
        """Return one :class:`Endpoint` per configured server, in order."""
        return [Endpoint(url=url, user=self.user, password=self.password) for url in self.servers]
