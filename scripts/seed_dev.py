#!/usr/bin/env python
"""Seed development database with a demo account.

Creates a demo user with a password login and one chat holding a sample
exchange, for local UI testing.

Constraints:
- Refuses to run in staging or prod (EUROASSIST_ENV check)
- Idempotent: an existing demo user is left untouched
- Never runs automatically (manual invocation only)

Usage:
    DATABASE_URL=... python scripts/seed_dev.py
"""

import os
import sys

DEMO_EMAIL = "demo@euroassist.example.com"
DEMO_PASSWORD = "demo-password"
DEMO_CHAT_TITLE = "Studying in the Netherlands"
DEMO_QUESTION = "What are the tuition fees for EU students in the Netherlands?"
DEMO_ANSWER = (
    "EU/EEA students at Dutch research universities pay the statutory tuition fee, "
    "which is set yearly by the government. Check the university's admissions page "
    "for the current amount."
)


def main():
    # 1. Environment check (hard fail in staging/prod)
    euroassist_env = os.getenv("EUROASSIST_ENV", "local")
    if euroassist_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in EUROASSIST_ENV={euroassist_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from euroassist.auth.accounts import register
    from euroassist.db.models import MessageRole
    from euroassist.db.session import session_scope
    from euroassist.services import chats, users

    with session_scope() as db:
        # 3. Idempotent seeding
        user = users.get_user_by_email(db, DEMO_EMAIL)
        user_created = user is None
        if user_created:
            user = register(
                db,
                email=DEMO_EMAIL,
                password=DEMO_PASSWORD,
                first_name="Demo",
                last_name="Student",
            )
            chat = chats.create_chat(db, user.id, DEMO_CHAT_TITLE)
            chats.create_message(db, chat.id, MessageRole.user, DEMO_QUESTION)
            chats.create_message(db, chat.id, MessageRole.assistant, DEMO_ANSWER)

    # 4. Report
    db_display = database_url.split("@")[1] if "@" in database_url else database_url
    print(f"Database: {db_display}")
    print(f"EUROASSIST_ENV: {euroassist_env}")
    print()
    print(f"{'✓ Created' if user_created else '• Exists'}: user {DEMO_EMAIL}")
    if user_created:
        print(f"  password: {DEMO_PASSWORD}")


if __name__ == "__main__":
    main()
