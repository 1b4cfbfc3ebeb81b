#!/usr/bin/env python3
"""
Seed the remote video collection from a videos-config.json file.

Reads the same JSON array the static backend serves and inserts each
entry as a document in the Snowflake video_documents table. Entries keep
their name, url, thumbnail, order and createdAt; ids are assigned by the
backend.

Usage:
    python scripts/seed_videos.py --file public/videos-config.json
    python scripts/seed_videos.py --dry-run

Requires:
    - .env file with Snowflake credentials (or SNOWFLAKE_MOCK_MODE=true)
"""

import json
import os
import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def parse_videos_config(filepath: str) -> list:
    """
    Parse a videos config file into records.

    Invalid entries are reported and skipped rather than aborting the
    whole import.
    """
    from showcase.core.videos.models import VideoRecord

    with open(filepath, 'r', encoding='utf-8') as f:
        documents = json.load(f)

    if not isinstance(documents, list):
        print("ERROR: Config must be a JSON array of videos")
        return []

    records = []
    for position, document in enumerate(documents):
        try:
            # configs written by hand often have no ids yet
            records.append(VideoRecord.from_document(document, id=document.get('id') or f"seed-{position}"))
        except (ValueError, AttributeError) as e:
            print(f"[SKIP] Entry {position}: {e}")

    return records


def seed_remote_collection(records: list, dry_run: bool = False) -> bool:
    """Insert records into the remote collection."""
    from showcase.api.dependencies import build_snowflake_config
    from showcase.config.settings import get_settings
    from showcase.infrastructure.snowflake.client import create_snowflake_connection
    from showcase.infrastructure.snowflake.repositories.videos import VideoDocumentRepository

    if dry_run:
        print("\n--- dry run, nothing is written ---\n")
        for record in records:
            print(f"Would insert: [{record.order}] {record.name} -> {record.url}")
        print(f"\nTotal: {len(records)} videos")
        return True

    settings = get_settings()
    config = build_snowflake_config(settings)

    try:
        print(f"Connecting to Snowflake account: {settings.snowflake_account or '(mock)'}")
        with create_snowflake_connection(config=config, mock_mode=settings.snowflake_mock_mode) as conn:
            repository = VideoDocumentRepository(conn)
            repository.ensure_schema()

            inserted = 0
            errors = 0
            for record in records:
                try:
                    document_id = repository.add_document(record)
                    inserted += 1
                    print(f"[OK] Inserted: {record.name} ({document_id})")
                except Exception as e:
                    errors += 1
                    print(f"[ERR] Error inserting {record.name}: {e}")

        print(f"\n=== Seed Complete ===")
        print(f"Inserted: {inserted}")
        print(f"Errors: {errors}")

        return errors == 0

    except Exception as e:
        print(f"ERROR: Snowflake unavailable: {e}")
        return False


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Seed the remote video collection')
    parser.add_argument('--dry-run', action='store_true', help="Validate the config and list what would be seeded")
    parser.add_argument('--file', default='public/videos-config.json', help='Videos config path')
    args = parser.parse_args()

    filepath = args.file
    if not os.path.exists(filepath):
        # Try relative to project root
        filepath = Path(__file__).parent.parent / args.file

    if not os.path.exists(filepath):
        print(f"ERROR: Cannot find {args.file}")
        sys.exit(1)

    print(f"Reading videos from: {filepath}")
    records = parse_videos_config(str(filepath))
    print(f"Found {len(records)} videos")

    if not records:
        print("ERROR: No valid videos found in config file")
        sys.exit(1)

    success = seed_remote_collection(records, dry_run=args.dry_run)

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
