from __future__ import annotations

import argparse
import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from . import models  # noqa: F401
from .config import get_settings
from .db import Base, build_sessionmaker, engine
from .logging_config import get_logger, setup_structured_logging
from .seed import seed

logger = get_logger(__name__)


async def init_models(seed_data: bool = True, bind: Optional[AsyncEngine] = None, reset: bool = False) -> None:
	"""Create the tables (dropping them first when ``reset``) and seed sample data into an empty database."""
	bind = bind or engine
	async with bind.begin() as conn:
		if reset:
			logger.warning("dropping_tables", url=str(bind.url))
			await conn.run_sync(Base.metadata.drop_all)
		await conn.run_sync(Base.metadata.create_all)
	if seed_data:
		await seed(build_sessionmaker(bind))


async def _run(seed_data: bool, reset: bool) -> None:
	try:
		await init_models(seed_data=seed_data, reset=reset)
	finally:
		await engine.dispose()


def main(argv: Optional[list[str]] = None) -> None:
	parser = argparse.ArgumentParser(description="Create the clinicbook database tables.")
	parser.add_argument("--init", action="store_true", help="drop existing tables, recreate them and seed sample data")
	parser.add_argument("--no-seed", action="store_true", help="skip sample data even when the database is empty")
	args = parser.parse_args(argv)

	settings = get_settings()
	setup_structured_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
	asyncio.run(_run(seed_data=not args.no_seed, reset=args.init))


if __name__ == "__main__":
	main()
