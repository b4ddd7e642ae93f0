import asyncio
import os

from mcp.client.session import ClientSession
from mcp.client.streamable_http import streamablehttp_client

# Obtained from the broker's /oauth/token endpoint after the PKCE flow.
ACCESS_TOKEN = os.environ["MCP_ACCESS_TOKEN"]

async def main():
    headers = {"Authorization": f"Bearer {ACCESS_TOKEN}"}
    async with streamablehttp_client("http://127.0.0.1:8002/mcp", headers=headers) as (read_stream, write_stream, _):
        async with ClientSession(read_stream, write_stream) as session:
            result = await session.initialize()
            print(f"Session initialized: {result.serverInfo.name}")

            tools = await session.list_tools()
            print("\nAvailable Tools:")
            for tool in tools.tools:
                print(f"- {tool.name}: {tool.description}")

            whoami = await session.call_tool("whoami", arguments={})
            print(f"\nwhoami: {whoami.content}")

if __name__ == "__main__":
    asyncio.run(main())
