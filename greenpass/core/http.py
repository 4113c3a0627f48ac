"""HTTP client factory for external API calls.

Provides per-service HTTP clients with connection pooling, timeouts,
and proper resource management.
"""

import httpx

# Default timeout configuration (seconds)
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 10.0
DEFAULT_WRITE_TIMEOUT = 10.0
DEFAULT_POOL_TIMEOUT = 5.0

# Module-level client storage for singleton pattern
_paypal_client: httpx.AsyncClient | None = None


def create_http_client(
    base_url: str = "",
    max_connections: int = 20,
    max_keepalive_connections: int = 10,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    read_timeout: float = DEFAULT_READ_TIMEOUT,
    write_timeout: float = DEFAULT_WRITE_TIMEOUT,
    pool_timeout: float = DEFAULT_POOL_TIMEOUT,
) -> httpx.AsyncClient:
    """Create a configured async HTTP client.

    Args:
        base_url: Base URL for all requests (empty string for none)
        max_connections: Maximum number of concurrent connections
        max_keepalive_connections: Maximum idle connections to keep alive
        connect_timeout: Timeout for establishing connection
        read_timeout: Timeout for reading response
        write_timeout: Timeout for sending request
        pool_timeout: Timeout for acquiring connection from pool

    Returns:
        Configured httpx.AsyncClient instance
    """
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=write_timeout,
            pool=pool_timeout,
        ),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
        ),
    )


def get_paypal_http_client(base_url: str) -> httpx.AsyncClient:
    """Get singleton HTTP client for the PayPal REST API.

    Captures can take several seconds on PayPal's side, so the read timeout
    is longer than the default. The client should be closed via
    close_http_clients() during application shutdown.
    """
    global _paypal_client
    if _paypal_client is None:
        _paypal_client = create_http_client(
            base_url=base_url,
            max_connections=50,
            max_keepalive_connections=10,
            read_timeout=30.0,
        )
    return _paypal_client


async def close_http_clients() -> None:
    """Close shared HTTP clients and release their connections."""
    global _paypal_client
    if _paypal_client is not None:
        await _paypal_client.aclose()
        _paypal_client = None
