"""
Configuration for a SheetFlow instance.
Built from keyword arguments, a nested dict (as loaded from a json/toml file)
or SHEETFLOW_* environment variables:

    SHEETFLOW_SPREADSHEET_ID        spreadsheet to open
    SHEETFLOW_CLIENT_EMAIL          service account email
    SHEETFLOW_PRIVATE_KEY           service account key, literal \\n allowed
    SHEETFLOW_CREDENTIALS_FILE      service account JSON key file instead
    SHEETFLOW_CLIENT_SECRETS        OAuth client secrets for the installed app flow
    SHEETFLOW_TOKEN_CACHE           where the installed app flow keeps tokens
    SHEETFLOW_CACHE_ENABLED         1/true to cache find() results
    SHEETFLOW_CACHE_TTL             seconds
    SHEETFLOW_CACHE_MAX             advisory entry limit
    SHEETFLOW_LOG_LEVEL             DEBUG, INFO, ...
    SHEETFLOW_LOG_FORMAT            text or json
"""
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Self
import json

from pydantic import Field, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .cache import DEFAULT_MAX_ENTRIES, DEFAULT_TTL
from .errors import SheetFlowConfigurationError
from .resources import SheetFlowResourceBase

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL")
_LOG_FORMATS = ("text", "json")

# same true/false spellings the environment settings accept
_FLAG = TypeAdapter(bool)

@dataclass
class CredentialsConfig(SheetFlowResourceBase):
    """
    Service account fields, or a path to the service account JSON key, or an
    OAuth client secrets file.  All empty means application default credentials.
    """
    client_email: str = field(default="")
    private_key: str = field(default="")
    credentials_file: str = field(default="")
    client_secrets: str = field(default="")
    token_cache: str = field(default="")

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        # keys pasted into env vars tend to arrive with escaped newlines
        if self.private_key and "\\n" in self.private_key:
            self.private_key = self.private_key.replace("\\n", "\n")

    def __bool__(self) -> bool:
        return bool(self.client_email and self.private_key) or bool(self.credentials_file) or bool(self.client_secrets)

    def __repr__(self) -> str:
        # never echo the key
        return f"{self.__class__.__name__}(client_email={self.client_email!r})"

    def service_account_info(self) -> dict|None:
        """
        The dict google-auth wants for a service account, or None when not
        using one.
        """
        if self.credentials_file:
            path = Path(self.credentials_file)
            if not path.is_file():
                raise SheetFlowConfigurationError(f"Credentials file not found: {path}")
            with open(path, 'r', encoding='utf-8') as f:
                try:
                    return json.load(f)
                except json.JSONDecodeError as e:
                    raise SheetFlowConfigurationError(f"Credentials file is not JSON: {path}") from e
        if self.client_email or self.private_key:
            if not (self.client_email and self.private_key):
                raise SheetFlowConfigurationError("Service account credentials need both client_email and private_key")
            return {
                "type": "service_account",
                "client_email": self.client_email,
                "private_key": self.private_key,
                "token_uri": "https://oauth2.googleapis.com/token"
            }
        return None

@dataclass
class CacheConfig(SheetFlowResourceBase):
    enabled: bool = field(default=False)
    ttl: int|float = field(default=DEFAULT_TTL)
    max_entries: int = field(default=DEFAULT_MAX_ENTRIES)

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        try:
            self.enabled = _FLAG.validate_python(self.enabled)
        except ValidationError as e:
            raise SheetFlowConfigurationError(f"Cache enabled is not a flag: {self.enabled!r}") from e
        self.ttl = float(self.ttl)
        self.max_entries = int(self.max_entries)
        if self.ttl <= 0:
            raise SheetFlowConfigurationError(f"Cache ttl must be positive: {self.ttl}")
        if self.max_entries < 0:
            raise SheetFlowConfigurationError(f"Cache max_entries must be >= 0: {self.max_entries}")

@dataclass
class LoggingConfig(SheetFlowResourceBase):
    level: str = field(default="")
    format: str = field(default="text")

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        self.level = str(self.level or "").upper()
        self.format = str(self.format or "text").lower()
        if self.level and self.level not in _LOG_LEVELS:
            raise SheetFlowConfigurationError(f"Invalid log level: {self.level}")
        if self.format not in _LOG_FORMATS:
            raise SheetFlowConfigurationError(f"Invalid log format: {self.format}")

@dataclass
class SheetFlowConfig(SheetFlowResourceBase):
    spreadsheet_id: str = field(default="")
    credentials: CredentialsConfig|dict = field(default_factory=dict)
    cache: CacheConfig|dict = field(default_factory=dict)
    logging: LoggingConfig|dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        self.spreadsheet_id = str(self.spreadsheet_id or "")
        self.credentials = (self.credentials if isinstance(self.credentials, CredentialsConfig)
                            else CredentialsConfig.from_dict(self.credentials))
        self.cache = self.cache if isinstance(self.cache, CacheConfig) else CacheConfig.from_dict(self.cache)
        self.logging = self.logging if isinstance(self.logging, LoggingConfig) else LoggingConfig.from_dict(self.logging)

    def __bool__(self) -> bool:
        return bool(self.spreadsheet_id)

    def validate(self) -> None:
        if not self.spreadsheet_id:
            raise SheetFlowConfigurationError("spreadsheet_id is required")
        # surfaces a half-filled service account or a missing key file now
        self.credentials.service_account_info()

    @classmethod
    def parse(cls, config: Self|Mapping|None) -> Self:
        """
        Accepts an instance, or a nested dict.  The dict may use the
        spreadsheetId spelling and an 'options' section holding cache/logging.
        """
        if isinstance(config, SheetFlowConfig):
            return config
        c = dict(config or {})
        options = dict(c.pop("options", None) or {})
        for k in ("cache", "logging"):
            if k in options and k not in c:
                c[k] = options[k]
        if "spreadsheetId" in c and "spreadsheet_id" not in c:
            c["spreadsheet_id"] = c.pop("spreadsheetId")
        return cls.from_dict(c)

    @classmethod
    def from_env(cls) -> Self:
        """Build from the SHEETFLOW_* environment variables."""
        try:
            settings = SheetFlowSettings()
        except ValidationError as e:
            raise SheetFlowConfigurationError(f"Invalid SHEETFLOW_* environment value: {e}") from e
        return settings.to_config()

    @property
    def config(self) -> dict:
        """Nested dict form, safe to log: the private key is masked."""
        b = self.to_base()
        if b["credentials"].get("private_key"):
            b["credentials"]["private_key"] = "***"
        return b

class SheetFlowSettings(BaseSettings):
    """
    The SHEETFLOW_* environment, flat.  Empty variables count as unset.
    """
    spreadsheet_id: str = Field("", alias="SHEETFLOW_SPREADSHEET_ID")

    # credentials
    client_email: str = Field("", alias="SHEETFLOW_CLIENT_EMAIL")
    private_key: str = Field("", alias="SHEETFLOW_PRIVATE_KEY")
    credentials_file: str = Field("", alias="SHEETFLOW_CREDENTIALS_FILE")
    client_secrets: str = Field("", alias="SHEETFLOW_CLIENT_SECRETS")
    token_cache: str = Field("", alias="SHEETFLOW_TOKEN_CACHE")

    # cache
    cache_enabled: bool = Field(False, alias="SHEETFLOW_CACHE_ENABLED")
    cache_ttl: float = Field(DEFAULT_TTL, alias="SHEETFLOW_CACHE_TTL")
    cache_max: int = Field(DEFAULT_MAX_ENTRIES, alias="SHEETFLOW_CACHE_MAX")

    # logging
    log_level: str = Field("", alias="SHEETFLOW_LOG_LEVEL")
    log_format: str = Field("text", alias="SHEETFLOW_LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_ignore_empty=True,
        extra="ignore",
    )

    def to_config(self) -> SheetFlowConfig:
        return SheetFlowConfig(
            spreadsheet_id=self.spreadsheet_id,
            credentials=CredentialsConfig(client_email=self.client_email,
                                          private_key=self.private_key,
                                          credentials_file=self.credentials_file,
                                          client_secrets=self.client_secrets,
                                          token_cache=self.token_cache),
            cache=CacheConfig(enabled=self.cache_enabled, ttl=self.cache_ttl, max_entries=self.cache_max),
            logging=LoggingConfig(level=self.log_level, format=self.log_format))
