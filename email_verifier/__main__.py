"""Command-line entrypoint: serve the API, run one cleanup pass, or test SMTP."""

import argparse
import asyncio
import logging
import sys

from email_verifier.core.config import get_settings
from email_verifier.core.errors import ServiceError
from email_verifier.core.logging import configure_logging
from email_verifier.services.cleanup import run_cleanup_once
from email_verifier.services.container import ServiceContainer
from email_verifier.services.email import SMTPNotifier

logger = logging.getLogger("email_verifier")


def serve() -> int:
    import uvicorn

    config = get_settings()
    uvicorn.run("email_verifier.main:app", host=config.HOST, port=config.PORT)
    return 0


async def _sweep_and_dispose(container: ServiceContainer) -> int:
    try:
        return await run_cleanup_once(container.open_service)
    finally:
        await container.dispose()


def sweep() -> int:
    container = ServiceContainer.from_settings(get_settings())
    try:
        removed = asyncio.run(_sweep_and_dispose(container))
    except ServiceError as exc:
        logger.error("Cleanup failed: %s", exc.message)
        return 1
    print(f"Removed {removed} expired verification code(s).")
    return 0


def check_smtp() -> int:
    """Authenticate against the configured SMTP server and quit."""

    config = get_settings()
    logger.info("Testing SMTP connection to %s:%s", config.SMTP_HOST, config.SMTP_PORT)
    try:
        SMTPNotifier(config).check_connection()
    except Exception as exc:
        logger.error("SMTP error: %s", exc)
        return 1
    logger.info("SMTP connection successful.")
    return 0


COMMANDS = {"serve": serve, "sweep": sweep, "check-smtp": check_smtp}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="email_verifier", description=__doc__)
    parser.add_argument("command", nargs="?", default="serve", choices=sorted(COMMANDS))
    args = parser.parse_args(argv)
    configure_logging(get_settings().LOG_LEVEL)
    return COMMANDS[args.command]()


if __name__ == "__main__":
    sys.exit(main())
