"""
Chain runtime - drive one invocation of a middleware pipeline.

This module is copied verbatim into every generated artifact, so it must
only import from the standard library.

The chain is a small state machine. Its state is one of:

- Succeeded(value): the success arm, ``value`` is the last result
- Failed(error): the failure arm, ``error`` is the last raised exception
- Stopped(settled): ``context.end()`` was called; every remaining step is a
  pass-through and ``settled`` is the state at the moment it took effect

Each step runs a then-phase followed by a catch-phase, mirroring a promise
``.then(a).catch(b)``. The stop request is checked at every phase boundary,
never inside a running handler.
"""

import asyncio
import inspect
import logging
import types
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Union


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Succeeded:
    value: Any = None


@dataclass(frozen=True)
class Failed:
    error: Exception


@dataclass(frozen=True)
class Stopped:
    settled: Union[Succeeded, Failed]


ChainState = Union[Succeeded, Failed, Stopped]


@dataclass(frozen=True)
class ChainStep:
    """One pipeline step: a success-path and/or a failure-path handler."""
    then: Optional[Callable[..., Any]] = None
    catch: Optional[Callable[..., Any]] = None
    label: str = ""


class ExecutionControl:
    """
    Per-invocation control surface, exposed on the host context as
    ``context.end()`` and ``context.prev``.
    """

    def __init__(self, context: Any):
        self.context = context if context is not None else types.SimpleNamespace()
        self.stopped = False
        self._expose("end", self.stop)
        self._expose("prev", None)

    def _expose(self, name: str, value: Any) -> None:
        if isinstance(self.context, dict):
            self.context[name] = value
        else:
            setattr(self.context, name, value)

    def stop(self) -> None:
        self.stopped = True

    def record(self, prev: Any) -> None:
        self._expose("prev", prev)


def checkpoint(state: ChainState, control: ExecutionControl) -> ChainState:
    """Enter the Stopped state once a stop was requested."""
    if control.stopped and not isinstance(state, Stopped):
        return Stopped(state)
    return state


async def settle(handler: Callable[..., Any], event: Any, control: ExecutionControl) -> ChainState:
    """Invoke a handler and turn its outcome into the next chain state."""
    try:
        result = handler(event, control.context)
        if inspect.isawaitable(result):
            result = await result
    except Exception as error:
        return Failed(error)
    return Succeeded(result)


async def advance(state: ChainState, step: ChainStep, event: Any,
                  control: ExecutionControl) -> ChainState:
    """Run the then-phase and the catch-phase of one step."""
    state = checkpoint(state, control)
    if isinstance(state, Stopped):
        logger.debug("Skipped step %s: pipeline stopped", step.label)
        return state

    if isinstance(state, Succeeded) and step.then is not None:
        control.record(state.value)
        state = await settle(step.then, event, control)

    state = checkpoint(state, control)
    if isinstance(state, Failed) and step.catch is not None:
        control.record(state.error)
        state = await settle(step.catch, event, control)
    return state


def unwrap(state: ChainState) -> Any:
    """Final value of a chain, raising a failure nobody caught."""
    if isinstance(state, Stopped):
        state = state.settled
    if isinstance(state, Failed):
        raise state.error
    return state.value


async def run_chain(steps: Sequence[ChainStep], event: Any, context: Any) -> Any:
    """Drive every step in order, awaiting each handler before the next."""
    control = ExecutionControl(context)
    state: ChainState = Succeeded()
    for step in steps:
        state = await advance(state, step, event, control)
    return unwrap(state)


def run_chain_sync(steps: Sequence[ChainStep], event: Any, context: Any) -> Any:
    """Blocking entry point for hosts that call handlers synchronously."""
    return asyncio.run(run_chain(steps, event, context))
