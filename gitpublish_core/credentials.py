"""Credential configuration and the pygit2 transport callbacks that use it.

A `CredentialConfig` holds at most one usable combination: either a token
(sent as the username with an empty password, the way GitHub accepts tokens
over HTTPS) or a username and password pair. `CredentialAdapter` answers the
credential requests libgit2 makes while cloning, fetching and pushing.
"""
import logging
import os
from typing import Dict, Optional, Tuple

import pygit2
from pygit2.enums import CredentialType
from pydantic import BaseModel, Field, SecretStr

from .exceptions import (
    AmbiguousCredentialsError,
    CredentialsRejectedError,
    MissingUsernameError,
    UnsupportedCredentialRequestError,
)

logger = logging.getLogger(__name__)

ENV_LOGIN = "GITHUB_LOGIN"
ENV_PASSWORD = "GITHUB_PASSWORD"
ENV_OAUTH = "GITHUB_OAUTH"
ENV_TOKEN = "GITHUB_TOKEN"

# libgit2 asks again after every rejected answer; stop instead of looping.
MAX_CREDENTIAL_ATTEMPTS = 3

SUPPORTED_CREDENTIAL_TYPES = CredentialType.USERPASS_PLAINTEXT | CredentialType.USERNAME


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


class CredentialConfig(BaseModel):
    """Username/password or token used for both the hosting API and git transport."""

    username: Optional[str] = Field(None, description="Login name on the hosting platform.")
    password: Optional[SecretStr] = Field(None, description="Password, used together with username.")
    token: Optional[SecretStr] = Field(None, description="Personal access / OAuth token.")

    @classmethod
    def from_env(cls) -> "CredentialConfig":
        """Reads GITHUB_LOGIN, GITHUB_PASSWORD and GITHUB_OAUTH (or GITHUB_TOKEN)."""
        return cls(
            username=_env(ENV_LOGIN),
            password=_env(ENV_PASSWORD),
            token=_env(ENV_OAUTH) or _env(ENV_TOKEN),
        )

    def resolve(self) -> Tuple[str, str]:
        """
        Returns the (username, password) pair to present to the git transport.

        Raises:
            MissingUsernameError: A password is configured without a username.
            AmbiguousCredentialsError: Token and password are both set, or a
                username is set with neither.
        """
        password = self.password.get_secret_value() if self.password else None
        token = self.token.get_secret_value() if self.token else None

        if password is None and token is not None:
            return token, ""
        if self.username is None:
            raise MissingUsernameError("Credential configuration is missing a username.")
        if token is None and password is not None:
            return self.username, password
        raise AmbiguousCredentialsError(
            "Credential configuration must hold either a token or a username and password, not both or neither."
        )


class CredentialAdapter(pygit2.RemoteCallbacks):
    """Non-interactive pygit2 callbacks backed by a `CredentialConfig`.

    Remote rejections reported while pushing are collected in `rejected_refs`
    (refname -> server message).
    """

    interactive = False

    def __init__(self, config: CredentialConfig, max_attempts: int = MAX_CREDENTIAL_ATTEMPTS):
        super().__init__()
        self.config = config
        self.max_attempts = max_attempts
        self.attempts = 0
        self.rejected_refs: Dict[str, str] = {}

    def supports(self, allowed_types) -> bool:
        return bool(allowed_types & SUPPORTED_CREDENTIAL_TYPES)

    def credentials(self, url, username_from_url, allowed_types):
        if not self.supports(allowed_types):
            raise UnsupportedCredentialRequestError(
                f"Cannot provide credentials of type {allowed_types!r} for '{url}'.",
                url=url,
                allowed_types=allowed_types,
            )

        self.attempts += 1
        if self.attempts > self.max_attempts:
            raise CredentialsRejectedError(
                f"Credentials for '{url}' were rejected {self.max_attempts} times."
            )

        username, password = self.config.resolve()
        kind = "token" if self.config.token is not None else "password"
        logger.debug("Answering %s credential request for %s", kind, url)

        if allowed_types & CredentialType.USERPASS_PLAINTEXT:
            return pygit2.UserPass(username, password)
        return pygit2.Username(username)

    def push_update_reference(self, refname, message):
        if message is not None:
            logger.warning("Remote rejected update of %s: %s", refname, message)
            self.rejected_refs[refname] = message
