"""
Compiler stages: handler references, step parsing, pipeline assembly,
variant resolution and emission.
"""

from .refs import (
    HandlerRef,
    HandlerRefParser,
    HandlerRefSyntaxError,
    parse_handler_ref,
    binding_name_for,
    split_module_path,
)
from .parser import (
    CanonicalStep,
    Then,
    Catch,
    ThenCatch,
    Step,
    parse_step,
)
from .assembler import (
    Pipeline,
    assemble,
    assemble_function,
    own_steps,
)
from .resolver import (
    Variant,
    Probe,
    FilesystemProbe,
    VariantResolver,
    resolve_variant,
)
from .emitter import (
    ChainEmitter,
    emit,
    runtime_source,
    reserved_names,
)

__all__ = [
    "HandlerRef",
    "HandlerRefParser",
    "HandlerRefSyntaxError",
    "parse_handler_ref",
    "binding_name_for",
    "split_module_path",
    "CanonicalStep",
    "Then",
    "Catch",
    "ThenCatch",
    "Step",
    "parse_step",
    "Pipeline",
    "assemble",
    "assemble_function",
    "own_steps",
    "Variant",
    "Probe",
    "FilesystemProbe",
    "VariantResolver",
    "resolve_variant",
    "ChainEmitter",
    "emit",
    "runtime_source",
    "reserved_names",
]
