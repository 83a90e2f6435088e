from collections.abc import Iterable
from pathlib import Path
import json
import copy
import logging

import google.auth
import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource
import googleapiclient.discovery_cache as gws_discovery_cache

from .errors import SheetFlowConfigurationError, SheetFlowConnectionError

logger = logging.getLogger(__name__)

class SheetsAccess():
    """
    Authenticated access to the Sheets API for one SheetFlow instance.
    Credentials are resolved once, in this order:
        service account info (client_email/private_key dict, as in the
            JSON key file Google hands out for a service account)
        a client secrets file, which runs the installed app OAuth flow and
            keeps the tokens in a local cache so the confirmation screens
            only happen once
        application default credentials (GOOGLE_APPLICATION_CREDENTIALS etc)
    Bad or missing credentials are a configuration error, failing to reach
    Google while getting a token is a connection error.
    """

    __SCOPES = {
        "sheets": "https://www.googleapis.com/auth/spreadsheets",
        "sheets-ro": "https://www.googleapis.com/auth/spreadsheets.readonly",
        "drive-file": "https://www.googleapis.com/auth/drive.file",
        "drive": "https://www.googleapis.com/auth/drive",
    }
    __SCOPE_URL_PREFIX = "https://www.googleapis.com/"

    __DEFAULT_AUTH_PROMPT_MSG = "Please visit this URL to authorize sheetflow: {url}"
    __DEFAULT_AUTH_FLOW_SUCCESS_MSG = "Authorization complete, you may close this window."

    def __init__(self, credentials: dict|None = None,
                 client_secrets: Path|str|None = None,
                 token_cache: Path|str|None = None,
                 scopes: Iterable[str]|str = ("sheets",)) -> None:
        self.__info = dict(credentials) if credentials else None
        self.__secrets = Path(client_secrets) if client_secrets else None
        self.__cache = Path(token_cache) if token_cache else None
        self.__discovery_cache = gws_discovery_cache.autodetect()
        self.__creds = None
        self.__service = None
        self.auth_server = 'localhost'
        self.auth_port = 0
        self.auth_prompt_msg = self.__DEFAULT_AUTH_PROMPT_MSG
        self.auth_flow_success_msg = self.__DEFAULT_AUTH_FLOW_SUCCESS_MSG
        self.scopes = scopes

    def __bool__(self) -> bool:
        """True is we are connected and authenticated"""
        return self.connected

    def __str__(self) -> str:
        if self.connected:
            return f"Connected:{str(self.__scopes)}"
        return f"Disconnected:{str(self.__scopes)}"

    def __repr__(self) -> str:
        return f"{str(self.__class__)}:{str(self)}"

    @classmethod
    def get_scope(cls, scope: str) -> str:
        """
        Get a scope based on simplified label.
        A raw URL will also be expected.
        """
        s = str(scope)
        sc = cls.__SCOPES.get(s, "")
        if not sc and s.startswith(cls.__SCOPE_URL_PREFIX):
            sc = s
        return sc

    @property
    def scopes(self) -> list[str]:
        return self.__scopes

    @scopes.setter
    def scopes(self, value: Iterable[str]|str) -> None:
        values = [value] if isinstance(value, str) else list(value)
        slist = []
        for v in values:
            s = self.get_scope(v)
            if not s:
                raise SheetFlowConfigurationError(f"Unknown scope: {v}")
            if s not in slist:
                slist.append(s)
        self.__scopes = slist
        self.__creds = None
        self.__service = None

    @property
    def connected(self) -> bool:
        """
        Are we authenticated with Google?
        """
        return bool(self.__creds) and bool(self.__creds.valid)

    @property
    def creds(self):
        return self.__creds

    @property
    def config(self) -> dict:
        """
        Configuration state as a dict, the service account key is never included.
        """
        return {
            'secrets': str(self.__secrets) if self.__secrets else None,
            'cache': str(self.__cache) if self.__cache else None,
            'scopes': list(self.__scopes),
            'server': self.auth_server,
            'port': self.auth_port
        }

    @config.setter
    def config(self, config: dict) -> None:
        """
        Set configuration state from a dict.
        Anything that changes which credentials get used drops the session.
        """
        v = config.get('port', None)
        if v is not None:
            self.auth_port = int(v)
        v = config.get('server', None)
        if v is not None:
            self.auth_server = str(v)
        v = config.get('auth_prompt_msg', None)
        if v is not None:
            self.auth_prompt_msg = str(v)
        v = config.get('flow_success_msg', None)
        if v is not None:
            self.auth_flow_success_msg = str(v)
        v = config.get('cache', None)
        if v is not None:
            self.__cache = Path(v)
            self.__creds = None
        v = config.get('secrets', None)
        if v is not None:
            self.__secrets = Path(v)
            self.__creds = None
        v = config.get('scopes', None)
        if v:
            self.scopes = v

    def _service_account(self):
        try:
            return service_account.Credentials.from_service_account_info(self.__info, scopes=self.__scopes)
        except (ValueError, KeyError) as e:
            raise SheetFlowConfigurationError(f"Invalid service account credentials: {e}") from e

    def _cached_user(self):
        """
        Reuse tokens from a previous installed app flow if the cache
        covers the scopes we want now.
        """
        if not (self.__cache and self.__cache.is_file()):
            return None
        with open(self.__cache, 'r', encoding='utf-8') as f:
            cached_scopes = json.load(f).get('scopes', [])
        if not all(s in cached_scopes for s in self.__scopes):
            logger.info("token cache %s lacks requested scopes, re-authorizing", self.__cache)
            self.__cache.unlink()
            return None
        creds = Credentials.from_authorized_user_file(str(self.__cache), copy.copy(self.__scopes))
        if not creds.valid and creds.refresh_token:
            try:
                creds.refresh(Request())
            except google.auth.exceptions.RefreshError as e:
                logger.warning("failed to refresh cached tokens: %s, re-authorizing", e)
                self.__cache.unlink()
                return None
        return creds

    def _installed_app(self):
        if not self.__secrets.is_file():
            raise SheetFlowConfigurationError(f"Client secrets file not found: {self.__secrets}")
        flow = InstalledAppFlow.from_client_secrets_file(str(self.__secrets), copy.copy(self.__scopes))
        creds = flow.run_local_server(host=self.auth_server, port=self.auth_port,
                                      authorization_prompt_message=self.auth_prompt_msg,
                                      success_message=self.auth_flow_success_msg)
        if self.__cache and creds:
            user_info = {'refresh_token': creds.refresh_token, 'client_id': creds.client_id,
                         'client_secret': creds.client_secret, 'scopes': self.__scopes}
            with open(self.__cache, 'w', encoding='utf-8') as f:
                json.dump(user_info, f, ensure_ascii=False, indent=2)
        return creds

    def connect(self) -> bool:
        """
        Establish the authenticated session, fetching an access token up
        front so bad credentials show up here and not on the first query.
        """
        self.__creds = None
        self.__service = None
        if not self.__scopes:
            raise SheetFlowConfigurationError("No scopes requested")
        if self.__info:
            creds = self._service_account()
        elif self.__secrets:
            creds = self._cached_user() or self._installed_app()
        else:
            try:
                creds, _ = google.auth.default(scopes=self.__scopes)
            except google.auth.exceptions.DefaultCredentialsError as e:
                raise SheetFlowConfigurationError("No credentials configured and no application default credentials found") from e
        if not creds.valid:
            try:
                creds.refresh(Request())
            except google.auth.exceptions.RefreshError as e:
                raise SheetFlowConfigurationError(f"Credentials were refused: {e}") from e
            except google.auth.exceptions.TransportError as e:
                raise SheetFlowConnectionError(f"Failed to reach Google for a token: {e}") from e
        self.__creds = creds
        logger.debug("connected with scopes %s", self.__scopes)
        return self.connected

    def get_service(self) -> Resource:
        """
        Build the Sheets v4 service if not already available, connecting if required.
        """
        if not self.connected:
            self.connect()
        if self.__service is None:
            self.__service = build("sheets", "v4", credentials=self.__creds,
                                   cache=self.__discovery_cache)
        return self.__service
