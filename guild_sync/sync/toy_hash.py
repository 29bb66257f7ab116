"""Toy-collection fingerprint for unowned characters.

Alts of the same account share a toy collection, so a hash of the sorted
toy ids groups characters whose owner is unknown.
"""

from __future__ import annotations

import hashlib
from typing import Any, Iterable

from guild_sync.sync.client import BattleNetClient
from guild_sync.sync.errors import NotFoundError, UpstreamError
from guild_sync.sync.logger import logger

# Stored for characters without any toys so they still carry a fingerprint
NO_TOYS_HASH = "a3741d687719e1c015f4f115371c77064771f699817f81f09016350165a19111"


def hash_toy_ids(toy_ids: Iterable[int]) -> str:
    """SHA-256 hex of the ascending toy ids joined with ",".

    An empty collection maps to NO_TOYS_HASH.
    """
    ordered = sorted(toy_ids)
    if not ordered:
        return NO_TOYS_HASH
    return hashlib.sha256(",".join(str(i) for i in ordered).encode()).hexdigest()


def extract_toy_ids(toys_document: Any) -> list[int]:
    """Numeric toy ids from a toys collection document; malformed entries are ignored."""
    if not isinstance(toys_document, dict):
        return []
    ids = []
    for item in toys_document.get("toys") or []:
        toy = item.get("toy") if isinstance(item, dict) else None
        toy_id = toy.get("id") if isinstance(toy, dict) else None
        if isinstance(toy_id, int) and not isinstance(toy_id, bool):
            ids.append(toy_id)
    return ids


async def compute_toy_hash(
    client: BattleNetClient, region: str, realm_slug: str, character_name: str
) -> str | None:
    """Fetch a character's toys and fingerprint them.

    Returns:
        The hash; NO_TOYS_HASH when the character has no toys or the
        collection is missing (404); None on any other upstream error, in
        which case the stored fingerprint should be left as is.
    """
    name = character_name.lower()
    try:
        index = await client.fetch_collections_index(region, realm_slug, name)
        href = ((index or {}).get("toys") or {}).get("href")
        if not href:
            return NO_TOYS_HASH
        toys = await client.fetch_href(href, f"char-toys-{region}-{realm_slug}-{name}")
    except NotFoundError:
        return NO_TOYS_HASH
    except UpstreamError as e:
        logger.warning(f"Could not fetch toys for {name}-{realm_slug}: {e}")
        return None

    return hash_toy_ids(extract_toy_ids(toys))
