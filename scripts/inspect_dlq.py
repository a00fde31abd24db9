#!/usr/bin/env python3
"""
Dead-Letter Inspection — Print terminally failed jobs without removing them.

Usage:
    # Oldest 20 entries:
    python scripts/inspect_dlq.py

    # More entries, raw wire JSON:
    python scripts/inspect_dlq.py --limit 100 --json

    # Just the count:
    python scripts/inspect_dlq.py --count
"""
import argparse
import asyncio
import os
import sys

# Ensure app root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def format_entry(message) -> str:
    enqueued = message.enqueued_at.strftime("%Y-%m-%d %H:%M:%S")
    job = message.job or "<undecodable>"
    return (f"{enqueued}  {job:<22} id={message.id or '-'}  "
            f"attempts={message.attempts}/{message.max_retries}  error={message.last_error}")


async def inspect(config_path: str = None, limit: int = 20, as_json: bool = False,
                  count_only: bool = False):
    from config.settings import load_settings
    from job_queue.dead_letter import DeadLetterStore
    from job_queue.store import create_list_store

    settings = load_settings(config_path)
    store = create_list_store(settings.queue)
    await store.connect()
    try:
        dead_letters = DeadLetterStore(store, f"{settings.queue.namespace}:dlq")
        total = await dead_letters.count()
        print(f"Dead-letter entries in {dead_letters.key}: {total}")
        if count_only:
            return

        for message in await dead_letters.peek(limit):
            print(message.to_json() if as_json else format_entry(message))
    finally:
        await store.close()


def main():
    parser = argparse.ArgumentParser(description="Dead-letter queue inspection")
    parser.add_argument("--config", default=None, help="path to settings YAML")
    parser.add_argument("--limit", type=int, default=20, help="Max entries to show")
    parser.add_argument("--json", action="store_true", help="Print raw message JSON")
    parser.add_argument("--count", action="store_true", help="Only print the entry count")
    args = parser.parse_args()

    asyncio.run(inspect(args.config, args.limit, args.json, args.count))


if __name__ == "__main__":
    main()
