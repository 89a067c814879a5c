import asyncio

import pytest

pytest.importorskip("mcp")

from conftest import requires_git  # noqa: E402
from repoindex_package import mcp_server  # noqa: E402


def test_list_tools():
    tools = asyncio.run(mcp_server.list_tools())
    assert [t.name for t in tools] == ["render_repo_index"]
    assert tools[0].inputSchema["required"] == ["args"]


def test_unknown_tool():
    with pytest.raises(ValueError):
        asyncio.run(mcp_server.call_tool("nope", {}))


def test_render_requires_arguments():
    with pytest.raises(ValueError):
        asyncio.run(mcp_server.call_tool("render_repo_index", {"args": []}))


@requires_git
def test_render_tool(make_repo, tmp_path):
    repo = make_repo("alpha", description="tool test\n")
    missing = str(tmp_path / "missing")
    result = asyncio.run(
        mcp_server.call_tool("render_repo_index", {"args": ["-c", "group", str(repo), missing]})
    )
    document = result[0].text
    assert '<tr class="cat"><td>group</td><td></td><td></td></tr>' in document
    assert '<a href="alpha/">alpha</a></td><td>tool test</td>' in document
    assert result[1].text == f"Could not open: {missing}"


@requires_git
def test_prompt(make_repo):
    repo = make_repo("beta")
    result = asyncio.run(mcp_server.get_prompt("repoindex-render", {"repodirs": str(repo)}))
    assert '<a href="beta/">beta</a>' in result.messages[0].content.text


def test_server_api_used_by_handlers():
    from mcp.server import Server

    for hook in ("list_prompts", "get_prompt", "list_tools", "call_tool", "create_initialization_options"):
        assert hasattr(Server, hook), hook
