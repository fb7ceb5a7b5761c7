"""
Build Pass - compile every function of a service that needs a pipeline.

A BuildPass is the per-pass context: it holds the validated settings, the
probe and its resolver, and the emitter. Functions are independent and are
built concurrently; artifacts are only handed to the writer once every
selected function has built successfully.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence

from .compiler.assembler import Pipeline, assemble_function
from .compiler.emitter import ChainEmitter
from .compiler.resolver import Probe, Variant, VariantResolver
from .config import DEFAULT_IMPORT_BASE, BuildConfig
from .exceptions import MiddlewareChainError, UnknownFunctionError, UnsupportedRuntimeError
from .logging_config import get_build_logger
from .models import FunctionDeclaration, MiddlewareSettings


SUPPORTED_RUNTIMES = (
    "python3.9",
    "python3.10",
    "python3.11",
    "python3.12",
    "python3.13",
)


# ============================================================
# ARTIFACT
# ============================================================

@dataclass(frozen=True)
class Artifact:
    """
    Generated pipeline source for one function.

    ::: This is-in-layer Compiler-Layer.
    ::: This is a value-object.
    """
    function_name: str
    filename: str
    source: str
    variant: Variant
    step_count: int
    entry_point: str


Writer = Callable[[Artifact], None]


# ============================================================
# BUILD PASS
# ============================================================

class BuildPass:
    """
    Compile middleware pipelines for the functions of one service.

    Usage:
        build = BuildPass(settings, FilesystemProbe(service_root))
        artifacts = build.build(declarations, writer=save_artifact)
    """

    def __init__(self,
                 settings: MiddlewareSettings,
                 probe: Probe,
                 config: Optional[BuildConfig] = None):
        """
        Args:
            settings: Global middleware settings of the service
            probe: Classifies handler modules into variants
            config: Build configuration (environment defaults when omitted)

        Raises:
            UnsupportedRuntimeError: If the service runtime cannot be targeted
        """
        if settings.runtime not in SUPPORTED_RUNTIMES:
            raise UnsupportedRuntimeError(settings.runtime)

        self.settings = settings
        self.config = config or BuildConfig()
        self.resolver = VariantResolver(probe)
        self.emitter = ChainEmitter(validate=self.config.validate_output)
        self.logger = get_build_logger()

        for warning in self.config.validate():
            self.logger.warning("Middleware: %s", warning)

    def needs_pipeline(self, declaration: FunctionDeclaration) -> bool:
        """Plain functions are left alone unless global hooks apply to them."""
        return (
            self.settings.has_global_hooks
            or declaration.middleware is not None
            or declaration.declares_steps
        )

    def entry_point(self, function_name: str) -> str:
        return f"{self.settings.folder_name}/{function_name}.handler"

    def assemble(self, declaration: FunctionDeclaration) -> Pipeline:
        return assemble_function(declaration, self.settings)

    def build_function(self, declaration: FunctionDeclaration) -> Optional[Artifact]:
        """
        Build the artifact of one function.

        Returns:
            The artifact, or None when the function's pipeline has no steps
        """
        pipeline = self.assemble(declaration)
        if pipeline.is_empty:
            self.logger.info("Middleware: function %s has no steps, skipping", declaration.name)
            return None

        variant = self.resolver.resolve(pipeline)
        if variant is Variant.TYPED and self.config.import_base != DEFAULT_IMPORT_BASE:
            self.logger.warning(
                "Middleware: function %s uses typed handler modules, which are imported "
                "from sys.path; import_base %r is ignored",
                declaration.name, self.config.import_base,
            )
        source = self.emitter.emit(pipeline, variant, self.config.import_base)
        self.logger.info(
            "Middleware: setting %d middlewares for function %s",
            len(pipeline), declaration.name,
        )
        return Artifact(
            function_name=declaration.name,
            filename=f"{declaration.name}.{variant.extension}",
            source=source,
            variant=variant,
            step_count=len(pipeline),
            entry_point=self.entry_point(declaration.name),
        )

    def select(self,
               declarations: Sequence[FunctionDeclaration],
               only: Optional[str] = None) -> List[FunctionDeclaration]:
        """Functions this pass will build, in declaration order."""
        if only is not None:
            matching = [d for d in declarations if d.name == only]
            if not matching:
                raise UnknownFunctionError(only)
            declarations = matching
        return [d for d in declarations if self.needs_pipeline(d)]

    def build(self,
              declarations: Iterable[FunctionDeclaration],
              only: Optional[str] = None,
              writer: Optional[Writer] = None) -> List[Artifact]:
        """
        Build every selected function, then write the artifacts.

        Args:
            declarations: Declared functions of the service
            only: Restrict the pass to a single function name
            writer: Called once per artifact after all builds succeeded

        Returns:
            Artifacts in declaration order

        Raises:
            MiddlewareChainError: The first failure in declaration order;
                nothing is written in that case
        """
        selected = self.select(list(declarations), only)
        if not selected:
            return []

        with ThreadPoolExecutor(max_workers=self.config.effective_workers) as pool:
            futures = [pool.submit(self.build_function, d) for d in selected]

        artifacts: List[Artifact] = []
        for declaration, future in zip(selected, futures):
            try:
                artifact = future.result()
            except MiddlewareChainError as e:
                self.logger.error("Middleware: build failed for function %s: %s", declaration.name, e)
                raise
            if artifact is not None:
                artifacts.append(artifact)

        if writer is not None:
            for artifact in artifacts:
                writer(artifact)
                self.logger.debug("Middleware: wrote %s", artifact.filename)

        return artifacts
