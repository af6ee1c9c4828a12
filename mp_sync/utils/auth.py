"""
Marketplace Credentials Module
Resolves per-store API credentials and names from environment variables.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

# Wildberries stores: CLI identifier -> token env var
WB_TOKEN_ENV = {
    "povar-na-rayone": "WB_POVAR_NA_RAYONE_TOKEN",
    "leeshop": "WB_LEESHOP_TOKEN",
}

# Ozon stores: CLI identifier -> env var prefix
OZON_ENV_PREFIX = {
    "leeshop": "OZON_LEESHOP",
    "povar": "OZON_POVAR",
}

# Names written into sink rows
STORE_DISPLAY_NAMES = {
    "wb": {"povar-na-rayone": "Povar", "leeshop": "LeeShop"},
    "ozon": {"leeshop": "Leeshop", "povar": "Povar"},
}

# Names used in file and sheet names
STORE_SHORT_NAMES = {
    "wb": {"povar-na-rayone": "povar", "leeshop": "leeshop"},
    "ozon": {"leeshop": "lee", "povar": "povar"},
}


@dataclass(frozen=True)
class OzonCredentials:
    client_id: str
    api_key: str


def _check_store(marketplace: str, store: str, stores: Dict[str, str]) -> None:
    if store not in stores:
        raise ValueError(
            f"Invalid {marketplace} store: {store}. Must be one of: {', '.join(stores)}"
        )


def get_wb_token(store: str, token: Optional[str] = None) -> str:
    """
    Get the Wildberries API token for a store.

    Args:
        store: Store identifier ('povar-na-rayone', 'leeshop')
        token: Explicit token (defaults to the store's env var)

    Raises:
        ValueError: If the store is unknown or the token is not set
    """
    _check_store("WB", store, WB_TOKEN_ENV)
    env_var = WB_TOKEN_ENV[store]
    token = token or os.environ.get(env_var)
    if not token:
        raise ValueError(f"Missing required credentials: {env_var}")
    return token


def get_ozon_credentials(
    store: str,
    client_id: Optional[str] = None,
    api_key: Optional[str] = None
) -> OzonCredentials:
    """
    Get the Ozon Seller API credentials for a store.

    Raises:
        ValueError: If the store is unknown or a credential is not set
    """
    _check_store("Ozon", store, OZON_ENV_PREFIX)
    prefix = OZON_ENV_PREFIX[store]
    client_id = client_id or os.environ.get(f"{prefix}_CLIENT_ID")
    api_key = api_key or os.environ.get(f"{prefix}_API_KEY")

    if not all([client_id, api_key]):
        missing = []
        if not client_id:
            missing.append(f"{prefix}_CLIENT_ID")
        if not api_key:
            missing.append(f"{prefix}_API_KEY")
        raise ValueError(f"Missing required credentials: {', '.join(missing)}")

    return OzonCredentials(client_id=client_id, api_key=api_key)


def get_store_display_name(marketplace: str, store: str) -> str:
    """Store name as written into report rows (e.g. 'Povar')."""
    names = STORE_DISPLAY_NAMES[marketplace]
    _check_store(marketplace, store, names)
    return names[store]


def get_store_short_name(marketplace: str, store: str) -> str:
    """Store name as used in file and sheet names (e.g. 'povar')."""
    names = STORE_SHORT_NAMES[marketplace]
    _check_store(marketplace, store, names)
    return names[store]
