"""Entry point for talking to the hosted backend (Supabase)."""

from __future__ import annotations

import httpx
from supabase import AsyncClient, AsyncClientOptions, acreate_client

from .config import BaasConfig, load_config


def client_options(
    config: BaasConfig, http: httpx.AsyncClient | None = None
) -> AsyncClientOptions:
    """Options for a client that holds one user's session in memory.

    Tokens are not refreshed in the background; `SessionManager` refreshes
    them ahead of expiry instead. OAuth uses the implicit flow, so the
    authorize URL does not depend on a code verifier kept by this client.
    """
    return AsyncClientOptions(
        auto_refresh_token=False,
        persist_session=False,
        flow_type="implicit",
        postgrest_client_timeout=config.http_timeout,
        storage_client_timeout=int(config.http_timeout),
        httpx_client=http,
    )


async def create_client(
    config: BaasConfig | None = None, http: httpx.AsyncClient | None = None
) -> AsyncClient:
    """Create a backend client, loading configuration when none is given.

    Args:
        config: Backend configuration (default: loaded from env/YAML).
        http: Optional httpx client for every service call, e.g. one on an
            `httpx.MockTransport` in tests.

    Raises:
        ValueError: If the project URL or anon key is not configured.
    """
    config = config or load_config()
    if not config.url:
        raise ValueError("Backend URL is not configured (set CATALOG_BAAS_URL)")
    if not config.anon_key:
        raise ValueError("Backend anon key is not configured (set CATALOG_BAAS_ANON_KEY)")
    return await acreate_client(config.url, config.anon_key, options=client_options(config, http))
