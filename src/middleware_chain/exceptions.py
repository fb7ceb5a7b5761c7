"""
Middleware Chain Exception Hierarchy

Contains all exception classes raised while compiling middleware pipelines.
Handler failures inside a generated pipeline are not represented here: they
travel along the failure arm of the chain at runtime.
"""

import json
from typing import Any


def _serialize(raw: Any) -> str:
    try:
        return json.dumps(raw)
    except (TypeError, ValueError):
        return repr(raw)


class MiddlewareChainError(Exception):
    """
    Base exception for all middleware chain build errors.

    ::: This is-in-layer Utility-Layer.
    ::: This is a exception.
    ::: This is stateless.
    """
    pass


class InvalidSpecError(MiddlewareChainError):
    """
    Raised when a raw step matches none of the recognized shapes.

    The message always echoes the serialized raw value so the offending
    descriptor entry can be found.
    """

    def __init__(self, raw: Any, reason: str = ""):
        self.raw = raw
        self.reason = reason
        message = f"Invalid handler: {_serialize(raw)}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class BindingCollisionError(InvalidSpecError):
    """
    Raised when two module paths of one pipeline sanitize to the same binding.
    """

    def __init__(self, binding_name: str, first: str, second: str):
        self.binding_name = binding_name
        self.module_paths = (first, second)
        super().__init__(
            [first, second],
            f"modules {first!r} and {second!r} both bind to {binding_name!r}",
        )


class ConflictingHandlerError(MiddlewareChainError):
    """
    Raised when a function mixes an explicit handler with a step array, or
    combines function hooks with global hooks without a merge rule.
    """

    def __init__(self, function_name: str, detail: str = ""):
        self.function_name = function_name
        message = (
            f"Error in function {function_name}. When defining a handler, "
            "only the { pre: ..., pos: ...} configuration is allowed."
        )
        if detail:
            message = f"Error in function {function_name}. {detail}"
        super().__init__(message)


class UnresolvedModuleError(MiddlewareChainError):
    """
    Raised when a referenced module has no recognized source representation.
    """

    def __init__(self, module_path: str):
        self.module_path = module_path
        super().__init__(
            f"Unsupported handler extension for module {module_path}. "
            "Only .py modules and packages (optionally with .pyi stubs) are supported."
        )


class UnsupportedRuntimeError(MiddlewareChainError):
    """
    Raised when the deployment runtime is not one the emitter can target.

    This is a global precondition and aborts the whole build pass.
    """

    def __init__(self, runtime: Any):
        self.runtime = runtime
        super().__init__(f'Middleware chain doesn\'t support the "{runtime}" runtime')


class UnknownFunctionError(MiddlewareChainError):
    """Raised when a single-function build names an undeclared function."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"Unknown function: {function_name}")


class EmitError(MiddlewareChainError):
    """
    Raised when generated pipeline source fails to compile.

    This always indicates a defect in the emitter or its templates.
    """
    pass


__all__ = [
    "MiddlewareChainError",
    "InvalidSpecError",
    "BindingCollisionError",
    "ConflictingHandlerError",
    "UnresolvedModuleError",
    "UnsupportedRuntimeError",
    "UnknownFunctionError",
    "EmitError",
]
