"""
Shared pytest fixtures for middleware chain tests.

Handler modules are written into a temporary service root. Every generated
handler appends its label to ``event["calls"]`` so tests can assert on
invocation order, and stores what it saw in ``context.prev``.
"""

import importlib
import importlib.util
import itertools
import sys
import types
from pathlib import Path

import pytest

from middleware_chain.logging_config import reset_build_logger


_artifact_ids = itertools.count()


def handler_source(label, result=None, raises=None, stop=False, is_async=False, export="handler"):
    """
    Source of a recording handler function.

    Args:
        label: Appended to event["calls"] when the handler runs
        result: Value returned by the handler
        raises: Message of a RuntimeError raised instead of returning
        stop: Call context.end() before settling
        is_async: Define the handler as a coroutine function
    """
    body = [
        f"event['calls'].append({label!r})",
        f"event.setdefault('prevs', {{}})[{label!r}] = context.prev",
    ]
    if stop:
        body.append("context.end()")
    if raises is not None:
        body.append(f"raise RuntimeError({raises!r})")
    else:
        body.append(f"return {result!r}")
    keyword = "async def" if is_async else "def"
    lines = [f"{keyword} {export}(event, context):"] + [f"    {line}" for line in body]
    return "\n".join(lines) + "\n"


class ServiceRoot:
    """A temporary service directory holding handler modules."""

    def __init__(self, path: Path):
        self.path = path

    def module(self, module_path, *functions, typed=False, package=False):
        """Write a handler module; ``functions`` are sources from handler_source."""
        stem = self.path.joinpath(*module_path.replace(".", "/").split("/"))
        if package:
            stem.mkdir(parents=True, exist_ok=True)
            target = stem / "__init__.py"
        else:
            stem.parent.mkdir(parents=True, exist_ok=True)
            target = stem.with_name(stem.name + ".py")
        target.write_text("\n\n".join(functions) or "\n", encoding="utf-8")
        if typed:
            target.with_suffix(".pyi").write_text(
                "from typing import Any\n\ndef handler(event: Any, context: Any) -> Any: ...\n",
                encoding="utf-8",
            )
        return target

    def handler(self, module_path, label=None, typed=False, **kwargs):
        """Write a module exporting a single recording ``handler``."""
        source = handler_source(label or f"{module_path}.handler", **kwargs)
        return self.module(module_path, source, typed=typed)


@pytest.fixture
def service_root(tmp_path):
    """An empty service root directory."""
    return ServiceRoot(tmp_path)


@pytest.fixture
def load_artifact(tmp_path, monkeypatch):
    """
    Load generated source as a module, the way the host runtime would.

    The artifact is written to ``<service root>/middleware_chain_handlers/``
    so that the default import base ("..") points back at the service root.
    The service root is also put on sys.path for statically imported handler
    modules.
    """
    monkeypatch.syspath_prepend(str(tmp_path))
    importlib.invalidate_caches()
    before = set(sys.modules)

    def load(source, name="artifact") -> types.ModuleType:
        folder = tmp_path / "middleware_chain_handlers"
        folder.mkdir(exist_ok=True)
        path = folder / f"{name}.py"
        path.write_text(source, encoding="utf-8")
        importlib.invalidate_caches()
        module_name = f"_generated_{name}_{next(_artifact_ids)}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        return module

    yield load

    for name in set(sys.modules) - before:
        del sys.modules[name]


@pytest.fixture
def import_entry_point(tmp_path, monkeypatch):
    """
    Resolve an entry point such as ``"folder/fn.handler"`` the way a Python
    host runtime does: split off the attribute, turn the path into a dotted
    module name and import it with the service root on sys.path.
    """
    monkeypatch.syspath_prepend(str(tmp_path))
    before = set(sys.modules)

    def load(entry_point):
        importlib.invalidate_caches()
        module_path, attribute = entry_point.rsplit(".", 1)
        module = importlib.import_module(module_path.replace("/", "."))
        return getattr(module, attribute)

    yield load

    for name in set(sys.modules) - before:
        del sys.modules[name]


@pytest.fixture
def event():
    return {"calls": []}


@pytest.fixture
def context():
    return types.SimpleNamespace(function_name="test-function")


@pytest.fixture(autouse=True)
def quiet_build_logger(monkeypatch, tmp_path):
    """Keep build logs out of the working directory."""
    monkeypatch.setenv("MIDDLEWARE_CHAIN_DEBUG_LOG", "")
    reset_build_logger()
    yield
    reset_build_logger()
