"""
Data models for middleware descriptors.

Pydantic models for the descriptor section a host hands to the build pass:
global middleware settings and per-function declarations.
"""

import keyword

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Any, Dict, List, Optional, Union
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class HookMergePolicy(str, Enum):
    """How function-level pre/pos hooks combine with global ones"""
    ERROR = "error"          # Refuse to guess (default)
    NEST = "nest"            # global pre, fn pre, handler, fn pos, global pos
    OVERRIDE = "override"    # Function hooks replace the global lists


# ============================================================================
# Descriptor Models
# ============================================================================

# Raw steps are kept untyped here: the step parser owns shape validation
# so that its "Invalid handler" message is the one users see.
RawStep = Any


class FunctionHooks(BaseModel):
    """Per-function pre/pos hooks wrapped around a single handler"""
    model_config = ConfigDict(extra="forbid")

    pre: List[RawStep] = Field(default_factory=list)
    pos: List[RawStep] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.pre and not self.pos


class FunctionDeclaration(BaseModel):
    """A deployable function as declared in the descriptor"""
    model_config = ConfigDict(extra="allow")

    name: str
    handler: Optional[Union[str, List[RawStep]]] = None
    middleware: Optional[Union[List[RawStep], FunctionHooks]] = None

    @property
    def declares_steps(self) -> bool:
        """True for an explicit step array, including the legacy list handler"""
        return isinstance(self.middleware, list) or isinstance(self.handler, list)

    @property
    def hooks(self) -> Optional[FunctionHooks]:
        if isinstance(self.middleware, FunctionHooks):
            return self.middleware
        return None

    @classmethod
    def from_descriptor(cls, name: str, raw: Dict[str, Any]) -> "FunctionDeclaration":
        """Build a declaration from a descriptor entry keyed by function name."""
        return cls.model_validate({"name": name, **raw})


class MiddlewareSettings(BaseModel):
    """Global middleware settings of a service

    Accepts the descriptor's camelCase keys (``folderName``, ``cleanFolder``,
    ``hookMerge``) as well as the field names.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    # Generated modules are imported as "<folder_name>.<function>", so every
    # segment must be a Python identifier
    folder_name: str = Field(default="middleware_chain_handlers", alias="folderName")
    clean_folder: bool = Field(default=True, alias="cleanFolder")
    pre: List[RawStep] = Field(default_factory=list)
    pos: List[RawStep] = Field(default_factory=list)
    runtime: str = "python3.12"
    hook_merge: HookMergePolicy = Field(default=HookMergePolicy.ERROR, alias="hookMerge")

    @field_validator("folder_name", mode="after")
    @classmethod
    def validate_folder_name(cls, v: str) -> str:
        """Ensure the folder can be imported as a package path."""
        segments = v.strip("/").split("/")
        for segment in segments:
            if not segment.isidentifier() or keyword.iskeyword(segment):
                raise ValueError(
                    f"folder_name {v!r} cannot be imported: {segment!r} is not a valid module name"
                )
        return "/".join(segments)

    @property
    def has_global_hooks(self) -> bool:
        return bool(self.pre or self.pos)
