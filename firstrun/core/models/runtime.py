"""
RuntimeConfig — the in-process configuration for one installation.

Built by the configuration persister from the submitted form and
handed to the database bootstrapper, so freshly submitted credentials
are usable without a restart and without touching global state.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_DB_PORT = "3306"


class DatabaseConnection(BaseModel):
    """Connection parameters for the application database."""

    driver: str = "mysql+pymysql"
    host: str = ""
    port: str = DEFAULT_DB_PORT
    database: str = ""
    username: str = ""
    password: str = Field(default="", repr=False)
    unix_socket: str = ""
    charset: str = "utf8mb4"
    collation: str = "utf8mb4_unicode_ci"
    prefix: str = ""
    strict: bool = True
    connect_timeout: int = 10

    @property
    def is_sqlite(self) -> bool:
        return self.driver.split("+", 1)[0] == "sqlite"


class RuntimeConfig(BaseModel):
    """Everything later stages need that earlier stages computed."""

    app_url: str = ""
    timezone: str = "UTC"
    env_values: dict[str, str] = Field(default_factory=dict)
    database: DatabaseConnection = Field(default_factory=DatabaseConnection)
