"""
Variant Resolver - pick one source variant for a whole pipeline.

Every module a pipeline references is probed. One typed module anywhere in
the pipeline upgrades the entire artifact to the typed variant; mixed
artifacts are never emitted.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..exceptions import UnresolvedModuleError
from .assembler import Pipeline
from .refs import split_module_path


logger = logging.getLogger(__name__)


# ============================================================
# VARIANTS
# ============================================================

class Variant(Enum):
    """
    Source dialect of handler modules, ordered by strictness.

    The value tuple is ``(strictness, artifact extension, template name)``.
    """
    PLAIN = (0, "py", "plain.py.j2")
    TYPED = (1, "py", "typed.py.j2")

    @property
    def strictness(self) -> int:
        return self.value[0]

    @property
    def extension(self) -> str:
        return self.value[1]

    @property
    def template(self) -> str:
        return self.value[2]

    def __lt__(self, other: "Variant") -> bool:
        if not isinstance(other, Variant):
            return NotImplemented
        return self.strictness < other.strictness

    @classmethod
    def weakest(cls) -> "Variant":
        return min(cls)


Probe = Callable[[str], Optional[Variant]]


# ============================================================
# FILESYSTEM PROBE
# ============================================================

class FilesystemProbe:
    """
    Classify handler modules by what exists under a service root.

    A module is found when ``<stem>.py`` or ``<stem>/__init__.py`` exists.
    It is typed when a ``.pyi`` stub sits next to it or its package carries
    a ``py.typed`` marker. A module present in both forms resolves to the
    typed variant.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _stem(self, module_path: str) -> Path:
        return self.root.joinpath(*split_module_path(module_path))

    def __call__(self, module_path: str) -> Optional[Variant]:
        stem = self._stem(module_path)
        module_file = stem.with_name(stem.name + ".py")
        package_init = stem / "__init__.py"

        if package_init.is_file():
            source, package_dir = package_init, stem
        elif module_file.is_file():
            source, package_dir = module_file, stem.parent
        else:
            logger.debug("No source found for module %s under %s", module_path, self.root)
            return None

        stub = source.with_suffix(".pyi")
        if stub.is_file() or (package_dir / "py.typed").is_file():
            return Variant.TYPED
        return Variant.PLAIN


# ============================================================
# RESOLUTION
# ============================================================

def resolve_variant(pipeline: Pipeline, probe: Probe) -> Variant:
    """
    Decide the single variant of a pipeline's artifact.

    Args:
        pipeline: Assembled pipeline
        probe: Classifies a module path, ``None`` when it cannot be found

    Returns:
        The strongest variant among all referenced modules; the weakest
        variant for a pipeline that references none

    Raises:
        UnresolvedModuleError: For the first module, in step order, the
            probe cannot classify
    """
    resolved = Variant.weakest()
    for module_path in pipeline.module_paths():
        variant = probe(module_path)
        if variant is None:
            raise UnresolvedModuleError(module_path)
        if resolved < variant:
            resolved = variant
    return resolved


class VariantResolver:
    """
    Resolve and remember one variant per pipeline for a single build pass.

    Owned by a build context; never shared across build passes.
    """

    def __init__(self, probe: Probe):
        self.probe = probe
        self._resolved: Dict[Pipeline, Variant] = {}

    def resolve(self, pipeline: Pipeline) -> Variant:
        variant = self._resolved.get(pipeline)
        if variant is None:
            variant = resolve_variant(pipeline, self.probe)
            self._resolved[pipeline] = variant
            logger.debug("Function %s resolved to %s", pipeline.function_name, variant.name)
        return variant
