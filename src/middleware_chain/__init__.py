"""
Middleware Chain - compile declarative handler steps into pipeline entry points

Each deployable function declares an ordered list of middleware steps. The
compiler parses the steps, assembles them with the service's global pre/pos
hooks, resolves the source variant of the referenced modules and emits a
Python module whose ``handler(event, context)`` runs the chain.

Example::

    from middleware_chain import (
        BuildPass, FilesystemProbe, FunctionDeclaration, MiddlewareSettings,
    )

    settings = MiddlewareSettings(pre=["middleware/auth.check"])
    functions = [
        FunctionDeclaration(name="create_user", handler="users/create.handler"),
    ]

    build = BuildPass(settings, FilesystemProbe("."))
    for artifact in build.build(functions):
        print(artifact.filename, artifact.entry_point)
"""

__version__ = "0.3.0"

from .exceptions import (
    MiddlewareChainError,
    InvalidSpecError,
    BindingCollisionError,
    ConflictingHandlerError,
    UnresolvedModuleError,
    UnsupportedRuntimeError,
    UnknownFunctionError,
    EmitError,
)
from .models import (
    FunctionDeclaration,
    FunctionHooks,
    HookMergePolicy,
    MiddlewareSettings,
)
from .config import BuildConfig
from .compiler import (
    HandlerRef,
    parse_handler_ref,
    Then,
    Catch,
    ThenCatch,
    parse_step,
    Pipeline,
    assemble,
    assemble_function,
    own_steps,
    Variant,
    FilesystemProbe,
    VariantResolver,
    resolve_variant,
    ChainEmitter,
    emit,
)
from .build import Artifact, BuildPass, SUPPORTED_RUNTIMES

__all__ = [
    # Exceptions
    "MiddlewareChainError",
    "InvalidSpecError",
    "BindingCollisionError",
    "ConflictingHandlerError",
    "UnresolvedModuleError",
    "UnsupportedRuntimeError",
    "UnknownFunctionError",
    "EmitError",
    # Models
    "FunctionDeclaration",
    "FunctionHooks",
    "HookMergePolicy",
    "MiddlewareSettings",
    "BuildConfig",
    # Compiler
    "HandlerRef",
    "parse_handler_ref",
    "Then",
    "Catch",
    "ThenCatch",
    "parse_step",
    "Pipeline",
    "assemble",
    "assemble_function",
    "own_steps",
    "Variant",
    "FilesystemProbe",
    "VariantResolver",
    "resolve_variant",
    "ChainEmitter",
    "emit",
    # Build
    "Artifact",
    "BuildPass",
    "SUPPORTED_RUNTIMES",
]
