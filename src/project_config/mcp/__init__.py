"""MCP stdio server exposing the project config operations as tools."""
