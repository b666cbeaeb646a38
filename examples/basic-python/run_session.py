"""Basic example: restore or log in, list organizations and switch between them.

Reads ``BOTRAK_*`` settings from the environment. Without credentials it only
attempts to restore a persisted session.

    BOTRAK_EMAIL=me@example.com BOTRAK_PASSWORD=... python run_session.py
"""

import asyncio
import os

from botrak_session import BotrakSettings, SessionState, open_session_manager
from botrak_session.logs import configure_logging


def print_snapshot(snapshot) -> None:
    context = snapshot.context
    if context is None:
        print(f"[state] {snapshot.state.value}")
    else:
        print(f"[state] {snapshot.state.value}: {context.organization_name} as {context.role}")


async def main() -> None:
    settings = BotrakSettings()
    configure_logging(settings.logging)

    manager = await open_session_manager(settings)
    manager.subscribe(print_snapshot)
    try:
        result = await manager.restore()
        if manager.state is not SessionState.AUTHENTICATED:
            email = os.environ.get("BOTRAK_EMAIL")
            password = os.environ.get("BOTRAK_PASSWORD")
            if not email or not password:
                print("No stored session; set BOTRAK_EMAIL and BOTRAK_PASSWORD to log in.")
                return
            result = await manager.login(email, password)

        if not result.ok:
            print(f"Sign-in failed ({result.failure.value}): {result.message}")
            return

        print(f"Start screen: {manager.initial_route()}")
        print("Menu: " + ", ".join(item.label for item in manager.menu()))

        listing = await manager.list_organizations()
        for org in listing.organizations:
            marker = "*" if str(org.organization_id) == str(manager.active_org.organization_id) else " "
            plan = "active" if org.plan_active else "inactive"
            print(f" {marker} {org.organization_id}: {org.organization_name} ({org.role}, plan {plan})")

        target = next(
            (
                org for org in listing.organizations
                if org.plan_active and str(org.organization_id) != str(manager.active_org.organization_id)
            ),
            None,
        )
        if target is not None:
            switched = await manager.switch_organization(target)
            print(switched.message)
    finally:
        await manager.aclose()


if __name__ == "__main__":
    asyncio.run(main())
