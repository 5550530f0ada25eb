from __future__ import annotations

import argparse
import asyncio

from tenantkey.persistence.db import create_all, drop_all, engine


async def _init(reset: bool) -> None:
    if reset:
        await drop_all()
    await create_all()
    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Create tenantkey tables")
    parser.add_argument("--reset", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()
    asyncio.run(_init(args.reset))
    print("tables ready")


if __name__ == "__main__":
    main()
