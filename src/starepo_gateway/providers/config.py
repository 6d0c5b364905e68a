"""
Account Configuration Loading

Developer convenience for the CLI: accounts come from a JSON file plus
STAREPO_<PROVIDER>_API_KEY / STAREPO_<PROVIDER>_BASE_URL environment
variables. Real account storage is owned by the host application.
"""

import json
import os
from pathlib import Path
from typing import Dict, Mapping, Optional

import structlog
from pydantic import ValidationError

from starepo_gateway.errors import ConfigurationError
from starepo_gateway.providers.base import ProviderAccountConfig

logger = structlog.get_logger(__name__)


def _env_name(provider_id: str, suffix: str) -> str:
    return f"STAREPO_{provider_id.upper().replace('-', '_')}_{suffix}"


def load_accounts_file(path: Path) -> Dict[str, ProviderAccountConfig]:
    """Read a JSON list (or {"accounts": [...]}) of account objects keyed by provider id"""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"Accounts file not found: {path}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Accounts file is not valid JSON: {path}: {e}")

    items = raw.get("accounts", []) if isinstance(raw, dict) else raw
    if not isinstance(items, list):
        raise ConfigurationError(f"Accounts file must contain a list of accounts: {path}")

    accounts: Dict[str, ProviderAccountConfig] = {}
    for item in items:
        try:
            account = ProviderAccountConfig.model_validate(item)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid account in {path}: {e}")
        accounts[account.provider_id] = account
    return accounts


def account_from_env(
    provider_id: str,
    base: Optional[ProviderAccountConfig] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[ProviderAccountConfig]:
    """Overlay environment credentials onto base; None if neither exists"""
    environ = os.environ if environ is None else environ
    api_key = environ.get(_env_name(provider_id, "API_KEY"))
    base_url = environ.get(_env_name(provider_id, "BASE_URL"))

    if base is None and not api_key and not base_url:
        return None

    account = base or ProviderAccountConfig(provider_id=provider_id)
    updates = {}
    if api_key:
        updates["api_key"] = api_key
    if base_url:
        updates["base_url"] = base_url
    if not updates:
        return account
    try:
        return ProviderAccountConfig.model_validate({**account.model_dump(), **updates})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid environment configuration for {provider_id}: {e}", provider_id=provider_id)


class AccountStore:
    """Read-only account lookup used as the factory's account provider"""

    def __init__(self, accounts: Optional[Dict[str, ProviderAccountConfig]] = None, environ: Optional[Mapping[str, str]] = None):
        self._accounts = dict(accounts or {})
        self._environ = environ

    @classmethod
    def from_file(cls, path: Optional[Path]) -> "AccountStore":
        accounts = load_accounts_file(path) if path else {}
        logger.debug("Loaded accounts", count=len(accounts), path=str(path) if path else None)
        return cls(accounts)

    def get(self, provider_id: str) -> Optional[ProviderAccountConfig]:
        return account_from_env(provider_id, self._accounts.get(provider_id), self._environ)

    async def __call__(self, provider_id: str) -> Optional[ProviderAccountConfig]:
        return self.get(provider_id)
