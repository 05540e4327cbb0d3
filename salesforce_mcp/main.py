# salesforce_mcp/main.py
import sys
import logging

from salesforce_mcp.config import load_config
from salesforce_mcp.mcp.registry import list_tools
from salesforce_mcp.mcp.server import create_server
from salesforce_mcp.utils.logging import setup_structured_logging


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv

    config = load_config()
    setup_structured_logging(level=config.logging_level, use_json=config.log_json)

    server = create_server(config)
    tool_names = ", ".join(tool.name for tool in list_tools()) or "(none)"

    # Check for HTTP/SSE mode
    if "--http" in argv or "--sse" in argv:
        logging.info("MCP starting (HTTP/SSE)")
        logging.info("Host: %s", config.http_host)
        logging.info("Port: %s", config.http_port)
        logging.info("Tools: %s", tool_names)
        server.run(transport="sse")
    elif "--mcp-stdio" in argv:
        logging.info("MCP starting (stdio)")
        logging.info("Tools: %s", tool_names)
        server.run(transport="stdio")
    else:
        # stdio is the default transport
        logging.info("MCP starting (stdio - default)")
        logging.info("Tools: %s", tool_names)
        server.run(transport="stdio")


if __name__ == "__main__":
    main()
