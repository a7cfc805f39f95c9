"""Castor: automatic function calling for Gemini models and chat sessions.

Public API:
    - Client: facade exposing ``models`` and ``chats``
    - FunctionTool / mcp_to_tool: callable tools the model may invoke
    - GenerateContentConfig / AutomaticFunctionCallingConfig: request settings
    - Content and Part types: provider-neutral conversation turns
"""

from __future__ import annotations

import logging

from castor.chats import Chat, Chats
from castor.client import Client
from castor.config import Config
from castor.errors import (
    APIError,
    CastorError,
    ConfigurationError,
    InternalError,
    RateLimitError,
    ToolContractError,
)
from castor.mcp import McpCallableTool, mcp_to_tool
from castor.models import Models
from castor.tools import FunctionTool
from castor.types import (
    AutomaticFunctionCallingConfig,
    Behavior,
    CallableTool,
    Candidate,
    Content,
    FileDataPart,
    FunctionCall,
    FunctionCallingConfig,
    FunctionDeclaration,
    FunctionResponse,
    GenerateContentConfig,
    GenerateContentResponse,
    InlineDataPart,
    Part,
    TextPart,
    Tool,
    ToolConfig,
    ToolUnion,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("castor-ai")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("castor").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "AutomaticFunctionCallingConfig",
    "Behavior",
    "CallableTool",
    "Candidate",
    "CastorError",
    "Chat",
    "Chats",
    "Client",
    "Config",
    "ConfigurationError",
    "Content",
    "FileDataPart",
    "FunctionCall",
    "FunctionCallingConfig",
    "FunctionDeclaration",
    "FunctionResponse",
    "FunctionTool",
    "GenerateContentConfig",
    "GenerateContentResponse",
    "InlineDataPart",
    "InternalError",
    "McpCallableTool",
    "Models",
    "Part",
    "RateLimitError",
    "TextPart",
    "Tool",
    "ToolConfig",
    "ToolContractError",
    "ToolUnion",
    "mcp_to_tool",
]
