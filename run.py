import argparse
import os
import sys

# Make the package importable when run from a source checkout
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from seoulmate_scraper.main import create_app
from seoulmate_scraper.orchestration.scraper_service import get_scraper_service
from seoulmate_scraper.storage.memory_store import RunTrigger
from seoulmate_scraper.utils.config import get_config
from seoulmate_scraper.utils.logging_config import get_logger


def main(argv=None):
    parser = argparse.ArgumentParser(description="SeoulMate attraction scraper")
    parser.add_argument('--scrape-once', action='store_true',
                        help='run a single scrape, print the new place count and exit')
    args = parser.parse_args(argv)

    logger = get_logger()
    config = get_config()

    if args.scrape_once:
        service = get_scraper_service()
        new_count = service.scrape_and_save(trigger=RunTrigger.MANUAL)
        logger.info(f"Scrape finished: {new_count} new places, {service.get_place_count()} stored")
        service.shutdown(wait=True)
        return 0

    app = create_app()
    logger.info("SeoulMate scraper service startup")
    app.run(host=config.app.host, port=config.app.port, debug=config.app.debug)
    return 0


if __name__ == '__main__':
    sys.exit(main())
