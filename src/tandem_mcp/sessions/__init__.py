"""Session persistence for Tandem MCP."""

from .models import SessionRecord
from .store import SessionStore, directory_key

__all__ = ["SessionRecord", "SessionStore", "directory_key"]
