#!/usr/bin/env python3
############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# seed_dev_data.py: Seed database with development test data
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Seed development data for VideoRelay."""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import get_async_db_context
from backend.app.db import crud
from backend.app.security import generate_api_key
from backend.app.settings import get_settings


async def ensure_groups(db):
    """Ensure default billing groups exist."""
    default_groups = [
        {"name": "default", "display_name": "Default", "description": "Standard pricing", "ratio": 1.0},
        {"name": "vip", "display_name": "VIP", "description": "Discounted pricing", "ratio": 0.8},
        {"name": "internal", "display_name": "Internal", "description": "Free internal usage", "ratio": 0.0},
    ]

    groups = {}
    for gdata in default_groups:
        existing = await crud.get_group_by_name(db, gdata["name"])
        if existing:
            groups[gdata["name"]] = existing
            print(f"  Group '{gdata['name']}' already exists, skipping...")
        else:
            group = await crud.create_group(db, **gdata)
            groups[gdata["name"]] = group
            print(f"  Created group: {gdata['display_name']} (ratio {gdata['ratio']})")

    return groups


async def seed_users():
    """Create default users for development."""
    settings = get_settings()

    async with get_async_db_context() as db:
        print("Ensuring groups...")
        groups = await ensure_groups(db)
        await db.commit()

        users_data = [
            {"username": "dev", "email": "dev@videorelay.local", "group_name": "default", "dollars": 10},
            {"username": "vip", "email": "vip@videorelay.local", "group_name": "vip", "dollars": 100},
        ]

        for user_data in users_data:
            existing = await crud.get_user_by_username(db, user_data["username"])
            if existing:
                print(f"User {user_data['username']} already exists, skipping...")
                continue

            group = groups[user_data["group_name"]]
            quota = int(user_data["dollars"] * settings.quota_per_unit)

            user = await crud.create_user(
                db=db,
                username=user_data["username"],
                email=user_data["email"],
                group_id=group.id,
                quota=quota,
            )
            print(f"Created user: {user.username} (group: {group.display_name})")
            print(f"  Balance: {quota} quota (${user_data['dollars']})")

            full_key, key_hash, key_prefix = generate_api_key()
            await crud.create_api_key(
                db=db,
                user_id=user.id,
                key_hash=key_hash,
                key_prefix=key_prefix,
                name="Default Key",
            )
            print(f"  Created API key: {key_prefix}...")
            print(f"  FULL KEY (save this!): {full_key}")
            print()

        await db.commit()


async def main():
    """Main entry point."""
    print("=" * 60)
    print("VideoRelay Development Data Seeder")
    print("=" * 60)
    print()

    print("Creating users...")
    await seed_users()

    print()
    print("=" * 60)
    print("Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
