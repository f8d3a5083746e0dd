"""
Script to create a local user who has finished onboarding and administers a
workspace, for manual testing.

    python -m taskflow.scripts.create_local_admin --email me@example.com --password secret123
"""

import argparse
import asyncio

from taskflow.core.database import get_session_context, init_db
from taskflow.services import memberships, organizations, users
from taskflow_shared.schemas.common import OnboardingStep


async def create_admin(email: str, password: str, first_name: str, last_name: str) -> None:
    await init_db()

    async with get_session_context() as session:
        user = await users.get_by_email(email, session)
        if not user:
            user = await users.create_user(email, password, first_name, last_name, session)
            print(f"Created user: {user.email}")
        else:
            print(f"User {user.email} already exists.")

        if not await memberships.list_user_orgs(user.id, session):
            org = await organizations.initialize_workspace(user, session)
            print(f"Created workspace {org.name!r} with {user.email} as admin.")

        if user.onboarding_step != OnboardingStep.COMPLETED.value:
            await users.advance_step(user, OnboardingStep.COMPLETED, session, auto_skip=True)

    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--first-name", default="Local")
    parser.add_argument("--last-name", default="Admin")

    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.first_name, args.last_name))
