"""Run the bot with ``python -m leetstreak``."""

import asyncio
import logging

from leetstreak.bot.client import run_bot
from leetstreak.shared.config import get_settings


def main() -> None:
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run_bot())


if __name__ == "__main__":
    main()
