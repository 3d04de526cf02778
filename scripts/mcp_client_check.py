#!/usr/bin/env python3
"""Connect to a running server's /mcp endpoint and exercise the booking tools."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os

from mcp.client.session import ClientSession
from mcp.client.streamable_http import streamablehttp_client

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    force=True,
)

BASE = os.getenv("KALBOOK_MCP_BASE", "http://127.0.0.1:8000/mcp")


async def run(base: str, service_id: str, day: str) -> None:
    print("KALBOOK_MCP_BASE =", base)
    async with streamablehttp_client(base) as (r, w, _):
        async with ClientSession(r, w) as s:
            await s.initialize()
            tools = await s.list_tools()
            print("TOOLS:", [t.name for t in tools.tools])

            res = await s.call_tool("ping", {"message": "hello"})
            print("PING RESULT:", res)

            res = await s.call_tool(
                "availability_list", {"input": {"service_id": service_id, "date": day}}
            )
            print("AVAILABILITY:", res)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--base", default=BASE, help="MCP endpoint URL")
    parser.add_argument("--service-id", default="svc-haircut")
    parser.add_argument("--date", required=True, help="Date to list availability for (YYYY-MM-DD)")
    args = parser.parse_args(argv)
    asyncio.run(run(args.base, args.service_id, args.date))
    return 0


if __name__ == "__main__":  # pragma: no cover - manual diagnostic utility
    raise SystemExit(main())
