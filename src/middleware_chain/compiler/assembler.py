"""
Pipeline Assembler - combine global and per-function steps into a Pipeline.

The final raw order is always ``global_pre ++ own_steps ++ global_pos``.
Which raw steps count as a function's own steps depends on how the function
is declared; see ``own_steps``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Any, Dict, List, Sequence, Tuple

from ..exceptions import BindingCollisionError, ConflictingHandlerError
from ..models import FunctionDeclaration, HookMergePolicy, MiddlewareSettings
from .parser import Step, parse_step
from .refs import HandlerRef, binding_name_for


# ============================================================
# PIPELINE
# ============================================================

@dataclass(frozen=True)
class Pipeline:
    """
    Ordered canonical steps of one deployable function.

    ::: This is-in-layer Compiler-Layer.
    ::: This is a value-object.
    """
    function_name: str
    steps: Tuple[Step, ...] = ()

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def refs(self) -> List[HandlerRef]:
        """Every handler reference, in step order, then-side before catch-side."""
        return [ref for step in self.steps for ref in step.refs()]

    def module_paths(self) -> List[str]:
        """Distinct module paths in order of first appearance."""
        seen: Dict[str, None] = {}
        for ref in self.refs():
            seen.setdefault(ref.module_path, None)
        return list(seen)

    def bindings(self, reserved: AbstractSet[str] = frozenset()) -> Dict[str, str]:
        """
        Map each distinct module path to its binding name.

        Raises:
            BindingCollisionError: If two module paths sanitize to one name
        """
        bindings: Dict[str, str] = {}
        owners: Dict[str, str] = {}
        for module_path in self.module_paths():
            name = binding_name_for(module_path, reserved)
            if name in owners:
                raise BindingCollisionError(name, owners[name], module_path)
            owners[name] = module_path
            bindings[module_path] = name
        return bindings


# ============================================================
# ASSEMBLY
# ============================================================

def own_steps(declaration: FunctionDeclaration) -> List[Any]:
    """
    Raw steps a function contributes on its own, first matching rule wins:

      (a) explicit step array        -> used verbatim
      (b) {pre, pos} hooks           -> pre ++ [handler] ++ pos
      (c) neither                    -> [handler], or [] without a handler

    Raises:
        ConflictingHandlerError: If a single handler is declared next to a
            step array
    """
    if declaration.declares_steps:
        if isinstance(declaration.middleware, list):
            if declaration.handler is not None:
                raise ConflictingHandlerError(declaration.name)
            return list(declaration.middleware)
        # Legacy form: the handler field itself is the step array
        if declaration.middleware is not None:
            raise ConflictingHandlerError(declaration.name)
        return list(declaration.handler)

    handler = [declaration.handler] if declaration.handler else []
    hooks = declaration.hooks
    if hooks is not None:
        return [*hooks.pre, *handler, *hooks.pos]
    return handler


def assemble(global_pre: Sequence[Any],
             steps: Sequence[Any],
             global_pos: Sequence[Any],
             function_name: str = "") -> Pipeline:
    """
    Parse ``global_pre ++ steps ++ global_pos`` into a Pipeline.

    Fails fast on the first invalid raw step, in sequence order.
    """
    combined = [*global_pre, *steps, *global_pos]
    return Pipeline(
        function_name=function_name,
        steps=tuple(parse_step(raw) for raw in combined),
    )


def assemble_function(declaration: FunctionDeclaration,
                      settings: MiddlewareSettings) -> Pipeline:
    """
    Assemble the pipeline of one declared function.

    Function hooks and global hooks together are combined according to
    ``settings.hook_merge``.
    """
    global_pre, global_pos = settings.pre, settings.pos
    hooks = declaration.hooks

    if hooks is not None and not hooks.is_empty and settings.has_global_hooks:
        policy = settings.hook_merge
        if policy == HookMergePolicy.ERROR:
            raise ConflictingHandlerError(
                declaration.name,
                "Function pre/pos hooks cannot be combined with global pre/pos "
                "hooks unless a hook_merge policy is configured.",
            )
        if policy == HookMergePolicy.OVERRIDE:
            global_pre, global_pos = [], []

    return assemble(global_pre, own_steps(declaration), global_pos, declaration.name)
