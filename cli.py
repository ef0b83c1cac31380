"""CLI entry point for featurebase-mcp-server.

Runs the MCP server in the foreground, over stdio (for desktop MCP clients
that spawn the server) or Streamable HTTP (for remote clients).
"""
import argparse
import sys

import httpx

from config import ConfigError, load_config

VERSION = "1.0.0"


# ============== Commands ==============

def cmd_start(args):
    """Start the server on the configured transport."""
    config = load_config().with_overrides(
        MCP_TRANSPORT=args.transport,
        PORT=args.port,
        MCP_HOST=args.host,
    )
    try:
        config.validate()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    # Imported late: builds the tool set and pulls in the web stack
    from main import run
    run(config)


def cmd_status(args):
    """Show configuration and whether an HTTP server answers locally."""
    config = load_config().with_overrides(PORT=args.port)

    print("\n" + "=" * 50)
    print("  Featurebase MCP Server Status")
    print("=" * 50)

    print("\n[Config]")
    try:
        print(f"  Transport: {config.transport}")
        print(f"  Port:      {config.port}")
    except ConfigError as e:
        print(f"  Invalid:   {e}")
        print("\n" + "=" * 50 + "\n")
        return
    print(f"  API key:   {'set' if config.featurebase_api_key else 'NOT SET'}")
    print(f"  API URL:   {config.featurebase_api_url}")
    print(f"  OAuth:     {'enabled' if config.enable_oauth else 'disabled'}")
    print(f"  MCP key:   {'set' if config.mcp_api_key else 'not set'}")

    print("\n[Server]")
    url = f"http://127.0.0.1:{config.port}/health"
    try:
        response = httpx.get(url, timeout=3.0)
        if response.status_code == 200:
            print(f"  Status:    Running on port {config.port}")
            print(f"  Endpoint:  {config.server_url}{config.mcp_path}")
        else:
            print(f"  Status:    Unhealthy (HTTP {response.status_code})")
    except httpx.HTTPError:
        print("  Status:    Not running")

    print("\n" + "=" * 50 + "\n")


def cmd_version(args):
    """Show version information."""
    print(f"featurebase-mcp-server v{VERSION}")


def cmd_help(args):
    """Show detailed help."""
    print("""
Featurebase MCP Server - Featurebase API tools for MCP clients

USAGE:
    featurebase-mcp <command> [options]

COMMANDS:
    start       Start the server (default)
    status      Show configuration and whether the server is running
    version     Show version information
    help        Show this help message

OPTIONS (start):
    --transport stdio|http    Override MCP_TRANSPORT
    --port PORT               Override PORT (http transport)
    --host HOST               Override MCP_HOST (http transport)

ENVIRONMENT:
    FEATUREBASE_API_KEY       Featurebase API key (required)
    MCP_TRANSPORT             stdio (default) or http
    SERVER_URL                Public URL of this server (OAuth issuer)
    ENABLE_OAUTH              true (default) or false
    MCP_API_KEY               Static key accepted as Bearer token or ?key=
    LOG_LEVEL, LOG_FORMAT     Log level and stderr format (plain or json)

EXAMPLES:
    # Desktop client (spawned over stdio)
    FEATUREBASE_API_KEY=... featurebase-mcp start

    # Remote clients over HTTP with OAuth
    featurebase-mcp start --transport http --port 3000
""")


COMMANDS = {
    "start": cmd_start,
    "status": cmd_status,
    "version": cmd_version,
    "help": cmd_help,
}


# ============== Main Entry Point ==============

def main(argv=None):
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        prog="featurebase-mcp",
        description="Featurebase MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  start     Start the MCP server (default)
  status    Show current status
  version   Show version
  help      Show detailed help
"""
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="start",
        choices=list(COMMANDS),
        help="Command to run (default: start)"
    )
    parser.add_argument("--transport", choices=["stdio", "http", "streamable-http"], help="Transport to serve on")
    parser.add_argument("--port", type=int, help="Port for the http transport")
    parser.add_argument("--host", help="Interface for the http transport")
    parser.add_argument("--version", "-v", action="store_true", help=argparse.SUPPRESS)

    args = parser.parse_args(argv)

    if args.version:
        cmd_version(args)
    else:
        COMMANDS[args.command](args)


if __name__ == "__main__":
    main()
