"""
Capability contracts for MCP servers.

A server exposes three kinds of capabilities:

- Tool: named, schema-described, invocable function
- Resource: URI-addressed readable content
- Prompt: named template rendering to a list of conversational messages

Applications either subclass the abstract bases or wrap plain callables
with FunctionTool / FunctionResource / FunctionPrompt.
"""

import inspect
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel


class ToolParameterType(str, Enum):
    """Standard parameter types for MCP tools."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


_ANNOTATION_TYPES = {
    str: ToolParameterType.STRING,
    int: ToolParameterType.INTEGER,
    float: ToolParameterType.NUMBER,
    bool: ToolParameterType.BOOLEAN,
    list: ToolParameterType.ARRAY,
    dict: ToolParameterType.OBJECT,
}


class ToolParameter(BaseModel):
    """Single argument of a tool."""

    name: str
    type: ToolParameterType = ToolParameterType.STRING
    description: str = ""
    required: bool = False
    default: Optional[Any] = None
    enum: Optional[List[Any]] = None


class PromptArgument(BaseModel):
    """Argument accepted by a prompt template."""

    name: str
    description: str = ""
    required: bool = False


class Tool(ABC):
    """Abstract base class for tools."""

    name: str
    description: str = ""

    @property
    @abstractmethod
    def input_schema(self) -> Dict[str, Any]:
        """JSON schema describing the tool arguments."""

    @abstractmethod
    def invoke(self, arguments: Dict[str, Any]) -> Any:
        """Execute the tool. May raise; callers turn exceptions into error content."""

    def to_descriptor(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class Resource(ABC):
    """Abstract base class for resources."""

    uri: str
    name: str = ""
    description: str = ""
    mime_type: str = "text/plain"

    @abstractmethod
    def read(self) -> Any:
        """Return the resource content (str, bytes or any JSON-serializable value)."""

    def to_descriptor(self) -> Dict[str, Any]:
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


class Prompt(ABC):
    """Abstract base class for prompt templates."""

    name: str
    description: str = ""
    arguments: Sequence[PromptArgument] = ()

    @abstractmethod
    def render(self, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Render the template into a list of messages."""

    def to_descriptor(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [argument.model_dump() for argument in self.arguments],
        }


class FunctionTool(Tool):
    """
    Tool backed by a plain callable.

    Arguments are passed to the callable as keyword arguments. When no explicit
    parameters are given they are inferred from the callable's signature and
    annotations; describe_arg() adds human readable descriptions.
    """

    def __init__(
        self,
        name: str,
        description: str,
        func: Callable[..., Any],
        parameters: Optional[List[ToolParameter]] = None,
    ):
        self.name = name
        self.description = description
        self.func = func
        self.parameters = parameters if parameters is not None else self._infer_parameters(func)

    @staticmethod
    def _infer_parameters(func: Callable[..., Any]) -> List[ToolParameter]:
        parameters = []
        for param in inspect.signature(func).parameters.values():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue

            param_type = _ANNOTATION_TYPES.get(param.annotation, ToolParameterType.STRING)
            required = param.default is inspect.Parameter.empty
            parameters.append(
                ToolParameter(
                    name=param.name,
                    type=param_type,
                    required=required,
                    default=None if required else param.default,
                )
            )
        return parameters

    def describe_arg(self, name: str, description: str) -> "FunctionTool":
        """Set the description of an argument. Returns self for chaining."""
        for param in self.parameters:
            if param.name == name:
                param.description = description
                return self

        self.parameters.append(ToolParameter(name=name, description=description))
        return self

    @property
    def input_schema(self) -> Dict[str, Any]:
        """Convert tool parameters to JSON Schema format."""
        properties: Dict[str, Any] = {}
        required = []

        for param in self.parameters:
            prop_schema: Dict[str, Any] = {
                "type": param.type.value,
                "description": param.description,
            }
            if param.enum:
                prop_schema["enum"] = param.enum
            if param.default is not None:
                prop_schema["default"] = param.default

            properties[param.name] = prop_schema
            if param.required:
                required.append(param.name)

        return {"type": "object", "properties": properties, "required": required}

    def invoke(self, arguments: Dict[str, Any]) -> Any:
        return self.func(**arguments)


class FunctionResource(Resource):
    """Resource whose content comes from a zero-argument callable."""

    def __init__(
        self,
        uri: str,
        handler: Callable[[], Any],
        name: str = "",
        description: str = "",
        mime_type: str = "text/plain",
    ):
        self.uri = uri
        self.handler = handler
        self.name = name or uri
        self.description = description
        self.mime_type = mime_type

    def read(self) -> Any:
        return self.handler()


class FunctionPrompt(Prompt):
    """Prompt rendered by a callable taking the argument dict."""

    def __init__(
        self,
        name: str,
        handler: Callable[[Dict[str, Any]], List[Dict[str, Any]]],
        description: str = "",
        arguments: Optional[List[Union[PromptArgument, Dict[str, Any]]]] = None,
    ):
        self.name = name
        self.handler = handler
        self.description = description
        self.arguments = [
            arg if isinstance(arg, PromptArgument) else PromptArgument.model_validate(arg)
            for arg in (arguments or [])
        ]

    def render(self, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self.handler(arguments)
