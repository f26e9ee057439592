"""Accessibility probes for remote engine assets.

Before committing to a tier whose assets live on a remote host, the engine
manager checks each remote URI with a HEAD request. Nothing is downloaded.
"""

import asyncio
import logging

import requests

from card_scanner.common.errors import EngineAssetUnreachable

from .config_loader import EngineTierConfig

logger = logging.getLogger(__name__)


def probe_asset(url: str, timeout: float = 5.0) -> None:
    """Check that a remote asset is reachable.

    Args:
        url: http(s) URI of the asset.
        timeout: Request timeout in seconds.

    Raises:
        EngineAssetUnreachable: On transport errors or a non-success status.
    """
    try:
        response = requests.head(url, timeout=timeout, allow_redirects=True)
    except requests.RequestException as e:
        raise EngineAssetUnreachable(url, str(e)) from e

    if not response.ok:
        raise EngineAssetUnreachable(url, f"HTTP {response.status_code}")

    logger.debug(f"Asset reachable: {url} (HTTP {response.status_code})")


async def probe_tier_assets(tier: EngineTierConfig, timeout: float = 5.0) -> None:
    """Probe every remote worker/core asset of a tier.

    Local tiers return immediately. Requests run in the default executor so
    the event loop keeps servicing other work while waiting.

    Raises:
        EngineAssetUnreachable: If any probe fails.
    """
    urls = tier.remote_assets
    if not urls:
        return

    logger.info(f"Probing {len(urls)} remote asset(s) for tier '{tier.name}'")
    for url in urls:
        await asyncio.to_thread(probe_asset, url, timeout)
