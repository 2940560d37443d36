#!/usr/bin/env python3
"""
Create (or recreate) the Persona tables in the configured database.

Development helper; production databases are managed with the alembic
migrations in alembic/versions.

Usage:
    python create_schema.py [--config CONFIG] [--drop] [--verbose]
"""

import sys
import argparse
import logging
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent))

from config_manager import get_config
from database.connection import DatabaseSettings, init_db, close_db

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create the Persona database tables")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first (destroys data)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = get_config(args.config)
    settings = DatabaseSettings.from_config(config.database)

    try:
        provider = init_db(settings)
        if args.drop:
            logger.warning("Dropping all tables in %s", settings.database)
            provider.drop_tables()
        logger.info("Creating tables in %s...", settings.database)
        provider.create_tables()
        logger.info("Tables created")
    except Exception as e:
        logger.error("Schema creation failed: %s", e)
        return 1
    finally:
        close_db()
    return 0


if __name__ == "__main__":
    sys.exit(main())
