import asyncio
import logging

from api_client import ApiClient
from models import Success

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
log = logging.getLogger(__name__)


def _on_session_change(signed_in: bool):
    if not signed_in:
        log.warning("Session ended, back to login")


async def main():
    client = ApiClient()
    client.session.add_listener(_on_session_change)
    try:
        if not client.restore():
            log.info("No stored credential at %s, sign in first", client.token_store.path)
            return

        profile = await client.update_user_profile()
        if profile:
            log.info("Signed in as %s", profile.get("username") or profile.get("name"))

        outcome = await client.get("/lists", params={"page": 1})
        if isinstance(outcome, Success):
            log.info("Lists: %s", outcome.body)
        else:
            log.error("Lists request failed: %s", outcome)
    finally:
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
