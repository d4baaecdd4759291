"""Command-line interface for nylas-mcp-proxy."""
