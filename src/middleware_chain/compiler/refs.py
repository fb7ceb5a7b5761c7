"""
Handler references - Lark-based parsing of "module.export" strings.

A handler reference names a callable exported by a module of the service.
The module path may itself contain dots or slashes; the reference is split
on its *last* dot.
"""

from __future__ import annotations

import keyword
import re
from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Optional, Tuple

from lark import Lark, Token
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
)


# ============================================================
# HANDLER REFERENCE
# ============================================================

_PART_SEPARATORS = re.compile(r"[/.]")
_NON_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_]")


@dataclass(frozen=True)
class HandlerRef:
    """
    A callable unit identified by ``(module_path, export_name)``.

    ::: This is-in-layer Compiler-Layer.
    ::: This is a value-object.
    """
    module_path: str
    export_name: str

    @property
    def module_parts(self) -> Tuple[str, ...]:
        return split_module_path(self.module_path)

    @property
    def dotted_module(self) -> str:
        return ".".join(self.module_parts)

    @property
    def file_stem(self) -> Path:
        """Module location relative to the service root, without suffix."""
        return Path(*self.module_parts)

    @property
    def binding_name(self) -> str:
        return binding_name_for(self.module_path)

    def __str__(self) -> str:
        return f"{self.module_path}.{self.export_name}"


def split_module_path(module_path: str) -> Tuple[str, ...]:
    """Split a module path on both "/" and "." separators."""
    return tuple(_PART_SEPARATORS.split(module_path))


def binding_name_for(module_path: str, reserved: AbstractSet[str] = frozenset()) -> str:
    """
    Sanitize a module path into a Python identifier.

    Characters outside ``[A-Za-z0-9_]`` become ``_`` and a leading digit is
    replaced by ``_``. Keywords and names listed in ``reserved`` get a
    trailing underscore.

    Args:
        module_path: Module path of a handler reference
        reserved: Names already defined by the generated artifact

    Returns:
        Identifier to bind the module to
    """
    name = _NON_IDENTIFIER_CHARS.sub("_", module_path)
    if name[:1].isdigit():
        name = "_" + name[1:]
    if keyword.iskeyword(name) or name in reserved:
        name += "_"
    return name


# ============================================================
# PARSER
# ============================================================

class HandlerRefSyntaxError(ValueError):
    """A handler reference string that does not match the grammar."""

    def __init__(self, text: str, message: str, column: Optional[int] = None):
        self.text = text
        self.column = column
        if column is not None:
            message = f"{message} at column {column}"
        super().__init__(message)


class HandlerRefParser:
    """
    Parser for handler reference strings.

    Singleton - the grammar is loaded once and cached.

    Usage:
        ref = HandlerRefParser().parse("src/handlers/auth.check")
        ref.module_path   # "src/handlers/auth"
        ref.export_name   # "check"
    """

    _instance: Optional["HandlerRefParser"] = None
    _parser: Optional[Lark] = None

    def __new__(cls) -> "HandlerRefParser":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if HandlerRefParser._parser is not None:
            return

        grammar_path = Path(__file__).parent / "handler_ref.lark"
        if not grammar_path.exists():
            raise FileNotFoundError(
                f"Grammar file not found: {grammar_path}\n"
                "Ensure handler_ref.lark is in the same directory as refs.py"
            )

        HandlerRefParser._parser = Lark(
            grammar_path.read_text(encoding="utf-8"),
            start="start",
            parser="lalr",
        )

    @property
    def parser(self) -> Lark:
        if HandlerRefParser._parser is None:
            raise RuntimeError("Parser not initialized")
        return HandlerRefParser._parser

    @classmethod
    def reset(cls) -> None:
        """Reset the parser cache to force grammar reload on next use."""
        cls._parser = None
        cls._instance = None

    def parse(self, text: str) -> HandlerRef:
        """
        Parse a handler reference.

        Args:
            text: Reference such as ``"handlers/auth.check"``

        Returns:
            HandlerRef split on the last dot

        Raises:
            HandlerRefSyntaxError: If the text is not a valid reference
        """
        if not text:
            raise HandlerRefSyntaxError(text, "empty handler reference")

        try:
            tree = self.parser.parse(text)
        except UnexpectedCharacters as e:
            raise HandlerRefSyntaxError(
                text, f"unexpected character {text[e.pos_in_stream]!r}", e.column
            ) from e
        except UnexpectedEOF as e:
            raise HandlerRefSyntaxError(text, "missing export name after the module path") from e
        except UnexpectedToken as e:
            if e.token.type == "$END":
                if text[-1] in "./":
                    raise HandlerRefSyntaxError(
                        text, "missing export name after the module path"
                    ) from e
                raise HandlerRefSyntaxError(
                    text, "expected \"module.export\", got a bare name"
                ) from e
            raise HandlerRefSyntaxError(
                text, f"empty path segment before {str(e.token)!r}", e.column
            ) from e
        except UnexpectedInput as e:
            raise HandlerRefSyntaxError(text, "malformed handler reference", e.column) from e

        tokens = [child for child in tree.children if isinstance(child, Token)]
        separator, export = tokens[-2], tokens[-1]
        if str(separator) != ".":
            raise HandlerRefSyntaxError(
                text, "reference must end with \".<export>\"", separator.column
            )

        export_name = str(export)
        if not export_name.isidentifier() or keyword.iskeyword(export_name):
            raise HandlerRefSyntaxError(
                text, f"export {export_name!r} is not a valid Python identifier", export.column
            )

        return HandlerRef(
            module_path="".join(str(token) for token in tokens[:-2]),
            export_name=export_name,
        )


def parse_handler_ref(text: str) -> HandlerRef:
    """Convenience wrapper around the shared HandlerRefParser."""
    return HandlerRefParser().parse(text)
