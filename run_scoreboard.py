#!/usr/bin/env python
"""Run one scoreboard pass and print the result as JSON.

Parameters are passed as key=value pairs, e.g.
    python run_scoreboard.py date_to=2024-05-31 limit=50 market_cap=1e11
"""
import asyncio
import json
import sys

from scoreboard.core.logging import setup_logging
from scoreboard.database.connection import close_database, init_database
from scoreboard.services.scoreboard import ScoreRequest, build_scoreboard


async def main(argv: list[str]) -> dict:
    params = dict(arg.split("=", 1) for arg in argv)
    request = ScoreRequest.from_params(**params)

    await init_database()
    try:
        result = await build_scoreboard(request)
    finally:
        await close_database()
    return result.to_dict()


if __name__ == "__main__":
    setup_logging()
    result = asyncio.run(main(sys.argv[1:]))
    print(json.dumps(result, ensure_ascii=False, indent=2))
