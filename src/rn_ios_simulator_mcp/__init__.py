"""MCP server for driving iOS Simulators and React Native apps."""

__version__ = "1.0.0"
