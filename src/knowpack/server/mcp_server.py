"""FastMCP server over a committed knowpack build."""

from pathlib import Path

from mcp.server.fastmcp import FastMCP

from knowpack.renderers.search_index import INDEX_PATH, SearchIndex
from knowpack.renderers.static_document import TOPICS_DIR


def create_mcp_server(build_dir: Path) -> FastMCP:
    """Create an MCP server for a specific build output directory.

    The server only reads the static artifacts of the build: the search
    index for lookups and the per-topic documents for full detail.

    Args:
        build_dir: Output directory of a committed build

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(
        name="knowpack",
    )

    # Loaded once per server
    index = SearchIndex.from_file(build_dir / INDEX_PATH)
    topics_dir = build_dir / TOPICS_DIR

    @mcp.tool()
    def ls(type: str = "", priority: str = "") -> str:
        """List chunks in the build.

        Args:
            type: Optional chunk type filter (e.g., "mistake-pattern")
            priority: Optional priority filter (critical, high, medium, low)

        Returns:
            One line per chunk with id, type, priority and title
        """
        return list_chunks(index, type, priority)

    @mcp.tool()
    def read(chunk_id: str) -> str:
        """Read the full detail document of one chunk.

        Args:
            chunk_id: Chunk identifier (as shown in ls or lookup output)

        Returns:
            Markdown document for the chunk
        """
        return read_topic(topics_dir, index, chunk_id)

    @mcp.tool()
    def lookup(keyword: str, prefix: bool = False) -> str:
        """Find chunks by keyword.

        Use prefix=True to match every keyword starting with the given
        text, e.g. "index" finds "indexing" and "index-base".

        Args:
            keyword: Keyword to look up (case-insensitive)
            prefix: Match keywords by prefix instead of exactly

        Returns:
            Matching chunks with their summaries
        """
        return lookup_keyword(index, keyword, prefix)

    return mcp


def list_chunks(index: SearchIndex, type: str = "", priority: str = "") -> str:
    lines = []
    for chunk_id in sorted(index.chunks):
        card = index.chunks[chunk_id]
        if type and card.get("type") != type:
            continue
        if priority and card.get("priority") != priority:
            continue
        lines.append(f"{chunk_id:<40} {card.get('type', ''):<20} {card.get('priority', ''):<9} {card.get('title', '')}")

    if not lines:
        return "No chunks match the given filters"
    return "\n".join(lines)


def read_topic(topics_dir: Path, index: SearchIndex, chunk_id: str) -> str:
    # Only serve ids the index knows, so the id never becomes an arbitrary path
    if index.card(chunk_id) is None:
        return f"Error: Chunk not found: {chunk_id}"
    path = topics_dir / f"{chunk_id}.md"
    if not path.exists():
        return f"Error: No detail document for: {chunk_id}"
    return path.read_text(encoding="utf-8")


def lookup_keyword(index: SearchIndex, keyword: str, prefix: bool = False) -> str:
    if prefix:
        chunk_ids = index.prefix_ids(keyword)
    else:
        chunk_ids = index.exact(keyword)

    if not chunk_ids:
        return f"No chunks found for: {keyword}"

    lines = []
    for i, chunk_id in enumerate(chunk_ids, 1):
        card = index.card(chunk_id) or {}
        # Truncate long summaries
        summary = card.get("summary", "")[:200].replace("\n", " ")
        lines.append(f"{i}. [{card.get('priority', '?')}] {chunk_id}: {card.get('title', '')}")
        lines.append(f"   {summary}")
        lines.append("")

    return "\n".join(lines)
