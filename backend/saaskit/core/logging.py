import logging
import sys

from saaskit.core.settings import Settings


def setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        stream=sys.stdout,
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
    )
