"""
Host-provided credential selection used before and after video generation calls.
"""

from __future__ import annotations

import getpass
import os
from typing import Callable, MutableMapping, Protocol

from storyreel.common.config import API_KEY_ENV_VARS


class CredentialSelector(Protocol):
    def has_selected_credential(self) -> bool:
        ...

    def open_selector(self) -> None:
        ...


class PromptingCredentialSelector:
    """
    Terminal implementation: asks for an API key and stores it in the environment.

    The key is written to ``STORYREEL_API_KEY``, the variable
    :meth:`storyreel.common.ServiceConfig.resolve_api_key` checks first, so the next
    client built after selection uses the new key even when an older key is still
    set under one of the other names.
    """

    def __init__(
        self,
        *,
        env_var: str = API_KEY_ENV_VARS[0],
        prompt_fn: Callable[[str], str] = getpass.getpass,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        self._env_var = env_var
        self._prompt_fn = prompt_fn
        self._environ = os.environ if environ is None else environ

    def has_selected_credential(self) -> bool:
        return any(self._environ.get(name, "").strip() for name in (self._env_var, *API_KEY_ENV_VARS))

    def open_selector(self) -> None:
        key = self._prompt_fn(f"Enter an API key with video generation access ({self._env_var}): ")
        key = key.strip()
        if key:
            self._environ[self._env_var] = key
