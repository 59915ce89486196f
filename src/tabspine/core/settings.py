"""Environment-driven settings for tabspine.

``TabspineSettings`` reads ``TABSPINE_*`` environment variables (and a
``.env`` file) so applications can build a connection without hard-coding
store ids or tokens.

Examples:
    >>> import os
    >>> os.environ["TABSPINE_STORE_ID"] = "1AbC"
    >>> TabspineSettings().store_id
    '1AbC'

Fields
──────
store_id      : Backing store identity
token         : Fixed OAuth bearer token (write-capable)
api_key       : Read-only API key
api_base_url  : Store REST endpoint
timeout       : Per-request HTTP timeout in seconds
log_level     : Structlog log level
log_format    : ``json`` or ``console``

Tags:
    settings, configuration, pydantic, environment, tabspine
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"


class TabspineSettings(BaseSettings):
    """Connection and observability settings."""

    model_config = SettingsConfigDict(
        env_prefix="TABSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Store ────────────────────────────────────────────────────
    store_id: str = ""
    token: str | None = None
    api_key: str | None = None
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"
