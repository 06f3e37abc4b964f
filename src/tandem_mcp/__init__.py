"""Tandem MCP: delegate work between the Claude and Gemini CLIs."""

__version__ = "0.1.0"

__all__ = ["__version__"]
