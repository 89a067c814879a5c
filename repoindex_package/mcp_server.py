#!/usr/bin/env python3
"""
MCP Server for repoindex - renders the repository index page over stdio
"""

import asyncio
import io
import logging
import sys
from typing import Any, Dict, List

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    GetPromptResult,
    Prompt,
    PromptArgument,
    PromptMessage,
    TextContent,
    Tool,
)
from .repoindex import (
    FatalError,
    SiteConfig,
    UsageError,
    generate_index,
    parse_entries,
)

# stdout belongs to the protocol stream
logging.basicConfig(level=logging.INFO, stream=sys.stderr)
logger = logging.getLogger(__name__)

server = Server("repoindex-mcp")


def render(args: List[str]) -> tuple[str, List[str]]:
    """Run the index pipeline into a string; returns (document, failed repodirs)."""
    entries = parse_entries(args)
    if not entries:
        raise UsageError("no repositories given")
    buf = io.StringIO()
    failures: List[str] = []
    generate_index(entries, buf, SiteConfig.from_env(), failures)
    return buf.getvalue(), failures


@server.list_prompts()
async def list_prompts() -> List[Prompt]:
    """List available prompts."""
    return [
        Prompt(
            name="repoindex-render",
            description="Render the HTML index page for local git repositories",
            arguments=[
                PromptArgument(
                    name="repodirs",
                    description="Whitespace separated repository directories",
                    required=True,
                )
            ],
        )
    ]


@server.get_prompt()
async def get_prompt(name: str, arguments: Dict[str, str] | None) -> GetPromptResult:
    """Get a specific prompt by name."""
    if name != "repoindex-render":
        raise ValueError(f"Unknown prompt: {name}")
    if not arguments or not arguments.get("repodirs", "").strip():
        raise ValueError("Missing required argument: repodirs")

    repodirs = arguments["repodirs"].split()
    logger.info(f"Rendering index for {len(repodirs)} repositories")
    document, failures = render(repodirs)
    text = f"Repository index for {' '.join(repodirs)}:\n\n{document}"
    if failures:
        text += f"\n\nCould not open: {', '.join(failures)}"
    return GetPromptResult(
        description="Repository index page",
        messages=[PromptMessage(role="user", content=TextContent(type="text", text=text))],
    )


@server.list_tools()
async def list_tools() -> List[Tool]:
    """List available tools."""
    return [
        Tool(
            name="render_repo_index",
            description="Render a static HTML index page for local git repositories",
            inputSchema={
                "type": "object",
                "properties": {
                    "args": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Repository directories in order; '-c', LABEL inserts a category row",
                    }
                },
                "required": ["args"],
            },
        )
    ]


@server.call_tool()
async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """Call a specific tool by name."""
    if name != "render_repo_index":
        raise ValueError(f"Unknown tool: {name}")
    if "args" not in arguments:
        raise ValueError("Missing required argument: args")

    args = [str(a) for a in arguments["args"]]
    logger.info(f"Rendering index with tool: {args}")
    try:
        document, failures = render(args)
    except (UsageError, FatalError) as e:
        logger.error(f"Error rendering index: {e}")
        raise ValueError(str(e)) from e

    result = [TextContent(type="text", text=document)]
    if failures:
        result.append(TextContent(type="text", text=f"Could not open: {', '.join(failures)}"))
    return result


async def serve() -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    """Main entry point for the MCP server."""
    asyncio.run(serve())


if __name__ == "__main__":
    main()
