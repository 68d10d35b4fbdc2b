from __future__ import annotations

from collections.abc import AsyncIterator

from peer_rating.clients.leancloud import LeanCloudClient
from peer_rating.config import load_settings
from peer_rating.services.rating_engine import RatingEngine, build_engine_from_settings


async def get_engine() -> AsyncIterator[RatingEngine]:
    settings = load_settings()
    client = LeanCloudClient.from_settings(settings)
    try:
        yield build_engine_from_settings(client, settings)
    finally:
        await client.close()
