"""
Enables the bundled semantic search extension.

Settings (agent-extensions.yaml):
    settings:
      code_index:
        binary: chunkhound
        config_path: ~/.chunkhound.json
"""

from agent_extensions.bundled.code_index import CodeIndexExtension, metadata

extension = CodeIndexExtension
