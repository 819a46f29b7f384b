"""
Extensions shipped with the package.
"""

from agent_extensions.bundled.code_index import CodeIndexExtension, SearchInput

__all__ = ["CodeIndexExtension", "SearchInput"]
