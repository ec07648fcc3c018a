#!/usr/bin/env python3
"""
Development Seed Script
Populates a local blob store with reference datasets and grants credits.

Usage:
    python scripts/seed_dev.py                          # Seed datasets only
    python scripts/seed_dev.py --user dev-user --credits 5
    python scripts/seed_dev.py --celebrity-image ./photo.jpg
"""

import argparse
import asyncio
import io
import json
import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from PIL import Image

from fanai.core.config import settings
from fanai.core.database import create_session_factory, init_db
from fanai.core.errors import BlobNotFound
from fanai.services.accounts import SqlCreditLedger
from fanai.services.blob_store import LocalBlobStore, StorageTarget
from fanai.services.reference_data import TEMPLATES_PATH, ReferenceDataService
from fanai.services.metadata_cache import MetadataCache


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger("fanai.seed")


DEV_TEMPLATES = [
    {
        "name": "Red Carpet",
        "slug": "red-carpet",
        "prompt": "A photo of the user posing with {{celeb_name}} on a red carpet, flash photography",
        "description": "Premiere night",
        "category": "events",
        "tags": ["premiere", "glamour"],
    },
    {
        "name": "Stadium Selfie",
        "slug": "stadium-selfie",
        "prompt": "A selfie of the user with {{celeb_name}} in a packed stadium",
        "description": "Match day",
        "category": "sports",
        "tags": ["selfie"],
    },
]


def placeholder_portrait() -> bytes:
    image = Image.new("RGB", (600, 800), (90, 110, 160))
    out = io.BytesIO()
    image.save(out, format="JPEG")
    return out.getvalue()


async def seed_reference(image_path: str = None):
    store = LocalBlobStore(settings.LOCAL_BLOB_PATH)
    target = StorageTarget(settings.GITHUB_OWNER, settings.GITHUB_REPO, settings.GITHUB_BRANCH)
    reference = ReferenceDataService(store, target, MetadataCache())

    try:
        revision = (await store.get(target, TEMPLATES_PATH)).revision
    except BlobNotFound:
        revision = None
    await store.put(
        target, TEMPLATES_PATH, json.dumps(DEV_TEMPLATES, indent=2).encode("utf-8"), "Seed templates", revision
    )
    logger.info(f"Seeded {len(DEV_TEMPLATES)} templates into {target}")

    if image_path:
        with open(image_path, "rb") as f:
            image_bytes = f.read()
    else:
        image_bytes = placeholder_portrait()

    await reference.upsert_celebrity(
        slug="demo-star",
        name="Demo Star",
        profession="Actor",
        image_bytes=image_bytes,
        description="Placeholder celebrity for local development",
        category="film",
    )
    logger.info("Seeded celebrity demo-star")


def main():
    parser = argparse.ArgumentParser(description="Seed local development data for FanAI")
    parser.add_argument("--user", "-u", help="User id to grant credits to")
    parser.add_argument("--credits", "-c", type=int, default=3, help="Credits to grant (default: 3)")
    parser.add_argument("--celebrity-image", help="JPEG used for the demo celebrity")

    args = parser.parse_args()

    if settings.BLOB_STORE_BACKEND != "local":
        logger.error("Seeding only targets the local blob store; set BLOB_STORE_BACKEND=local")
        sys.exit(1)

    asyncio.run(seed_reference(args.celebrity_image))

    if args.user:
        session_factory = create_session_factory(settings.DATABASE_URL)
        init_db(session_factory.kw["bind"])
        total = SqlCreditLedger(session_factory).grant_credits(args.user, args.credits)
        logger.info(f"User {args.user} now has {total} credits")


if __name__ == "__main__":
    main()
