#!/usr/bin/env python3
"""Create a campaign for an admin and print its invite code."""

import argparse
import sys
from pathlib import Path

# Make the backend directory importable when run from a checkout
BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BASE_DIR))

from scheduler.core.config import settings
from scheduler.core.errors import SchedulerError
from scheduler.core.logging_config import setup_logging
from scheduler.core.store import create_store
from scheduler.schemas.state import Actor
from scheduler.schemas.status import UserRole
from scheduler.services.campaigns import create_campaign
from scheduler.services.invites import display_invite_code


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create a scheduling campaign")
    parser.add_argument("name", help="Campaign name")
    parser.add_argument("--uid", required=True, help="User id of the admin creating the campaign")
    parser.add_argument("--admin-name", default="", help="Display name of the admin")
    parser.add_argument("--email", default="", help="Email of the admin")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(settings.LOG_LEVEL)

    if settings.STORE_BACKEND == "memory":
        print("Warning: STORE_BACKEND=memory, the campaign will not outlive this process")

    store = create_store()
    actor = Actor(uid=args.uid, name=args.admin_name, email=args.email, role=UserRole.ADMIN)
    try:
        campaign = create_campaign(store, actor, args.name)
    except SchedulerError as exc:
        print(f"✗ Error: {exc}")
        return 1

    print("=" * 60)
    print(f"✓ Campaign created: {campaign.name}")
    print(f"  ID: {campaign.id}")
    print(f"  Invite code: {display_invite_code(campaign.invite_code)}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nCancelled by user")
