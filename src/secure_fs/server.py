"""MCP server assembly.

:class:`ServerContext` owns every long-lived collaborator of a running server
(settings, validation cache, sandbox, metrics, toolset). ``build_server``
registers the toolset on a FastMCP instance; ``serve`` runs it over stdio.
"""

import logging
from dataclasses import dataclass, field

from mcp.server.fastmcp import FastMCP

from secure_fs.config import ServerSettings
from secure_fs.metrics import MetricsReporter, OperationMetrics
from secure_fs.sandbox import PathSandbox, PathValidationCache
from secure_fs.tools import FileSystemTools

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = (
    "Sandboxed filesystem access. Only paths inside the allowed directories can be "
    "read or modified; call list_allowed_directories to see them."
)


@dataclass
class ServerContext:
    """Top-level owner of the server's shared state."""

    settings: ServerSettings
    sandbox: PathSandbox
    metrics: OperationMetrics
    tools: FileSystemTools
    cache: PathValidationCache | None = None
    reporter: MetricsReporter | None = field(default=None)

    def close(self) -> None:
        """Stop background threads and drop cached validations."""
        if self.reporter is not None:
            self.reporter.stop()
        if self.cache is not None:
            self.cache.close()


def create_context(settings: ServerSettings) -> ServerContext:
    """Build a ServerContext from validated settings.

    Args:
        settings: Settings with at least one allowed directory

    Returns:
        ServerContext with fresh cache, sandbox, metrics and tools
    """
    cache = None
    if settings.cache.enabled:
        cache = PathValidationCache(
            max_size=settings.cache.max_size, ttl_seconds=settings.cache.ttl_seconds
        )

    sandbox = PathSandbox(
        settings.allowed_directories,
        cache=cache,
        allow_symlinks=settings.security.allow_symlinks,
    )
    metrics = OperationMetrics()
    tools = FileSystemTools(settings, sandbox=sandbox, metrics=metrics)

    reporter = None
    if settings.metrics.enabled and settings.metrics.report_interval_seconds > 0:
        reporter = MetricsReporter(metrics, settings.metrics.report_interval_seconds)

    return ServerContext(
        settings=settings,
        sandbox=sandbox,
        metrics=metrics,
        tools=tools,
        cache=cache,
        reporter=reporter,
    )


def build_server(context: ServerContext) -> FastMCP:
    """Register every filesystem tool on a new FastMCP instance."""
    server = FastMCP(context.settings.server_name, instructions=SERVER_INSTRUCTIONS)
    for tool in context.tools.get_tools():
        server.add_tool(tool, name=tool.__name__)
        logger.debug(f"Registered tool: {tool.__name__}")
    return server


async def serve(context: ServerContext) -> None:
    """Run the MCP server over stdio until the client disconnects."""
    server = build_server(context)
    if context.reporter is not None:
        context.reporter.start()

    logger.info(
        f"{context.settings.server_name} {context.settings.server_version} running on stdio "
        f"(allowed directories: {list(context.sandbox.allowed_directories)})"
    )
    try:
        await server.run_stdio_async()
    finally:
        context.close()
        logger.info(f"Final metrics: {context.metrics.get_metrics()}")
