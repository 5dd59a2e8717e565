#!/usr/bin/env python3
"""Seed the database with a demo project, licensee and key.

Usage:
    python scripts/seed_project.py [slug] [email]
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from keyguard_engine.common.config import get_settings
from keyguard_engine.common.database import DatabaseManager
from keyguard_engine.deps import get_registry
from keyguard_engine.licensing.service import LicenseService
from keyguard_engine.projects.service import ProjectService


async def seed_project(slug: str = "demo", email: str = "demo@example.com") -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    registry = get_registry()
    projects = ProjectService(settings, registry)
    licensing = LicenseService(settings, registry)

    async with db.get_session() as session:
        project = await projects.get_by_slug(session, slug)
        if project:
            print(f"  [skip] project {slug} already exists")
        else:
            project = await projects.create_project(
                session, name=slug.title(), slug=slug, description="Demo project",
            )
            print(f"  [created] project {slug} ({project.key_generator})")
            print(f"            secret_key={project.secret_key}")

        user = await projects.get_user_by_email(session, project, email)
        if user:
            print(f"  [skip] user {email} already exists")
        else:
            user = await projects.create_user(session, project, email, name="Demo User")
            print(f"  [created] user {email}")

        key, _ = await licensing.generate_key(session, project, user, features=["demo"])
        print(f"  [created] key {key.key}")

    await db.close()
    print("\nDone.")


if __name__ == "__main__":
    asyncio.run(seed_project(*sys.argv[1:3]))
