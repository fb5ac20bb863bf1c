import argparse
import logging

from gymbot.bot import run_forever, run_once
from gymbot.config import load_settings
from gymbot.domain import StorageFatalError
from gymbot.store import initialize


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="GymBot: trainer booking bot")
    parser.add_argument("--once", action="store_true", help="Handle a single batch of updates and exit")
    parser.add_argument("--init-only", action="store_true", help="Load or seed the state file and exit")
    args = parser.parse_args()

    _setup_logging()
    logger = logging.getLogger(__name__)
    settings = load_settings()

    try:
        store = initialize(settings.state_file)
    except StorageFatalError as e:
        # С повреждённым состоянием не стартуем.
        logger.error("Cannot start: %s", e)
        return 1

    if args.init_only:
        return 0

    try:
        if args.once:
            run_once(settings, store)
        else:
            run_forever(settings, store)
        return 0
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 0
    finally:
        store.flush()


if __name__ == "__main__":
    raise SystemExit(main())
