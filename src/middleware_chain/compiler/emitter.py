"""
Chain Emitter - render a Pipeline into the source of a deployable handler.

The artifact is a Python module rendered from Jinja2 templates:

- ``base.py.j2`` lays out the module: the inlined chain runtime, the handler
  module bindings, the ``STEPS`` table and the entry points
- ``plain.py.j2`` loads handler modules by file path at import time
- ``typed.py.j2`` imports handler modules statically and annotates the
  entry points

The chain runtime (``middleware_chain.runtime``) is inlined verbatim into
both variants, so their run-time behaviour is identical.
"""

from __future__ import annotations

import ast
import inspect
import keyword
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .. import __version__, runtime
from ..exceptions import EmitError
from .assembler import Pipeline
from .parser import Step
from .refs import HandlerRef, split_module_path
from .resolver import Variant


logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

# Names the templates define at module level, next to the runtime's own
TEMPLATE_NAMES = frozenset({
    "STEPS", "SERVICE_ROOT", "load_module", "handler", "async_handler",
    "importlib", "os", "sys", "ModuleType", "Any", "Sequence",
})


# ============================================================
# RUNTIME INLINING
# ============================================================

@lru_cache(maxsize=1)
def runtime_source() -> str:
    """Source of the chain runtime without its module docstring."""
    source = inspect.getsource(runtime)
    tree = ast.parse(source)
    first = tree.body[0] if tree.body else None
    if isinstance(first, ast.Expr) and isinstance(first.value, ast.Constant) \
            and isinstance(first.value.value, str):
        source = "".join(source.splitlines(keepends=True)[first.end_lineno:])
    return source.strip("\n")


@lru_cache(maxsize=1)
def reserved_names() -> FrozenSet[str]:
    """Module-level names an artifact defines before binding handler modules."""
    names = set(TEMPLATE_NAMES)
    for node in ast.parse(runtime_source()).body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.add(node.name)
        elif isinstance(node, (ast.Import, ast.ImportFrom)):
            for alias in node.names:
                names.add((alias.asname or alias.name).split(".")[0])
        elif isinstance(node, ast.Assign):
            names.update(t.id for t in node.targets if isinstance(t, ast.Name))
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            names.add(node.target.id)
    return frozenset(names)


# ============================================================
# EMITTER
# ============================================================

def _is_static_importable(parts) -> bool:
    return all(part.isidentifier() and not keyword.iskeyword(part) for part in parts)


class ChainEmitter:
    """
    Renders pipelines for a target variant.

    Usage:
        emitter = ChainEmitter()
        source = emitter.emit(pipeline, Variant.PLAIN, import_base="..")
    """

    _environment: Optional[Environment] = None

    def __init__(self, validate: bool = True):
        """
        Initialize the emitter.

        Args:
            validate: Compile-check every rendered artifact with ``ast.parse``
        """
        self.validate = validate

    @property
    def environment(self) -> Environment:
        if ChainEmitter._environment is None:
            env = Environment(
                loader=FileSystemLoader(str(TEMPLATE_DIR)),
                undefined=StrictUndefined,
                autoescape=False,
                trim_blocks=True,
                lstrip_blocks=True,
                keep_trailing_newline=True,
            )
            env.filters["pyrepr"] = repr
            ChainEmitter._environment = env
        return ChainEmitter._environment

    def emit(self, pipeline: Pipeline, variant: Variant, import_base: str = "..") -> str:
        """
        Render the artifact source for one pipeline.

        Args:
            pipeline: Assembled pipeline
            variant: Target variant decided by the resolver
            import_base: Path from the artifact's directory to the service
                root. Only the plain variant loads modules by path; the
                typed variant imports them statically, so the service root
                must be on ``sys.path`` and ``import_base`` is not used

        Returns:
            Python source text of the artifact

        Raises:
            BindingCollisionError: If two modules share a binding name
            EmitError: If the rendered text does not compile
        """
        bindings = pipeline.bindings(reserved_names())
        template = self.environment.get_template(variant.template)
        source = template.render(
            function_name=pipeline.function_name,
            version=__version__,
            variant=variant.name.lower(),
            runtime_source=runtime_source(),
            import_base=import_base,
            modules=self._modules_context(bindings),
            steps=[self._step_context(step, bindings) for step in pipeline],
        )

        if self.validate:
            self._check(source, pipeline)

        logger.debug(
            "Emitted %s artifact for %s: %d steps, %d modules",
            variant.name, pipeline.function_name, len(pipeline), len(bindings),
        )
        return source

    # ------------------------------------------------------------
    # template context
    # ------------------------------------------------------------

    @staticmethod
    def _modules_context(bindings: Dict[str, str]) -> List[Dict[str, Any]]:
        modules = []
        for module_path, binding in bindings.items():
            parts = split_module_path(module_path)
            modules.append({
                "binding": binding,
                "module_path": module_path,
                "parts": list(parts),
                "dotted": ".".join(parts),
                "static": _is_static_importable(parts),
            })
        return modules

    @staticmethod
    def _step_context(step: Step, bindings: Dict[str, str]) -> Dict[str, Any]:
        def reference(ref: Optional[HandlerRef]) -> Optional[str]:
            if ref is None:
                return None
            return f"{bindings[ref.module_path]}.{ref.export_name}"

        then_ref, catch_ref = step.then_ref, step.catch_ref
        label = str(then_ref) if then_ref else f"catch {catch_ref}"
        if then_ref and catch_ref:
            label = f"{then_ref} catch {catch_ref}"
        return {
            "then": reference(then_ref),
            "catch": reference(catch_ref),
            "label": label,
        }

    @staticmethod
    def _check(source: str, pipeline: Pipeline) -> None:
        try:
            ast.parse(source, filename=f"<middleware {pipeline.function_name}>")
        except SyntaxError as e:
            raise EmitError(
                f"Generated source for function {pipeline.function_name} does not "
                f"compile: {e.msg} (line {e.lineno})"
            ) from e


def emit(pipeline: Pipeline, variant: Variant, import_base: str = "..") -> str:
    """Render a pipeline with a default ChainEmitter."""
    return ChainEmitter().emit(pipeline, variant, import_base)
