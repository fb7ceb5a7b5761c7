"""
Step Parser - normalize raw middleware steps into canonical steps.

A raw step is either a handler reference string or a mapping with ``then``
and/or ``catch`` references. Shape sniffing happens once, here; everything
downstream works on the three canonical step types.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

from ..exceptions import InvalidSpecError
from .refs import HandlerRef, HandlerRefSyntaxError, parse_handler_ref


# ============================================================
# CANONICAL STEPS
# ============================================================

class CanonicalStep:
    """
    Base of the three canonical step shapes.

    ::: This is-in-layer Compiler-Layer.
    ::: This is a value-object.
    """

    @property
    def then_ref(self) -> Optional[HandlerRef]:
        return None

    @property
    def catch_ref(self) -> Optional[HandlerRef]:
        return None

    def refs(self) -> Tuple[HandlerRef, ...]:
        """Handler references of this step, then-side first."""
        return tuple(ref for ref in (self.then_ref, self.catch_ref) if ref is not None)


@dataclass(frozen=True)
class Then(CanonicalStep):
    """Step with only a success-path handler."""
    handler: HandlerRef

    @property
    def then_ref(self) -> HandlerRef:
        return self.handler


@dataclass(frozen=True)
class Catch(CanonicalStep):
    """Step with only a failure-path handler."""
    handler: HandlerRef

    @property
    def catch_ref(self) -> HandlerRef:
        return self.handler


@dataclass(frozen=True)
class ThenCatch(CanonicalStep):
    """Step with both a success-path and a failure-path handler."""
    on_then: HandlerRef
    on_catch: HandlerRef

    @property
    def then_ref(self) -> HandlerRef:
        return self.on_then

    @property
    def catch_ref(self) -> HandlerRef:
        return self.on_catch


Step = Union[Then, Catch, ThenCatch]


# ============================================================
# PARSING
# ============================================================

def _ref(raw: Any, value: Any) -> HandlerRef:
    if not isinstance(value, str):
        raise InvalidSpecError(raw, "handler references must be strings")
    try:
        return parse_handler_ref(value)
    except HandlerRefSyntaxError as e:
        raise InvalidSpecError(raw, str(e)) from e


def parse_step(raw: Any) -> Step:
    """
    Normalize one raw step.

    Rules, in priority order:
      1. string                -> Then
      2. {then, catch}         -> ThenCatch
      3. {then}                -> Then
      4. {catch}               -> Catch
      5. anything else         -> InvalidSpecError echoing the raw value

    Args:
        raw: String reference or mapping with ``then``/``catch`` keys

    Returns:
        The canonical step

    Raises:
        InvalidSpecError: If the raw step has no recognized shape
    """
    if isinstance(raw, str):
        return Then(_ref(raw, raw))

    if isinstance(raw, Mapping):
        then_value = raw.get("then")
        catch_value = raw.get("catch")
        if then_value and catch_value:
            return ThenCatch(_ref(raw, then_value), _ref(raw, catch_value))
        if then_value:
            return Then(_ref(raw, then_value))
        if catch_value:
            return Catch(_ref(raw, catch_value))

    raise InvalidSpecError(raw)
