# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/document.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Helpers for the parsed fixture document tree.

A document node is one of three shapes: a scalar (``str``, ``int``,
``float``, ``bool`` or ``None``), a sequence (``list`` of nodes) or a mapping
(``dict`` of string keys to nodes). Every helper here dispatches over exactly
those shapes, so reference walking, merging and path edits behave the same
everywhere.

Field paths are mapping keys joined with dots (``address.city``). Dots and
backslashes inside a key are escaped with a backslash, so ``{"meta.owner": ...}``
is addressed as ``meta\\.owner``. A reference found inside a sequence is
addressed by the path of the sequence itself.

Examples:
    >>> list(iter_references({"owner": "@user", "tags": ["@a", "plain"]}))
    [('owner', 'user'), ('tags', 'a')]
    >>> deep_merge({"a": 1, "n": {"x": 1, "y": 2}}, {"n": {"y": 3}})
    {'a': 1, 'n': {'x': 1, 'y': 3}}
"""

# Standard
import copy
from typing import Any, Dict, Iterator, List, Tuple, Union

REFERENCE_PREFIX = "@"
PATH_SEPARATOR = "."
PATH_ESCAPE = "\\"

Scalar = Union[str, int, float, bool, None]
Node = Union[Scalar, List["Node"], Dict[str, "Node"]]

_MISSING = object()


def is_reference(value: Any) -> bool:
    """Tell whether a value is a reference token such as ``@customer``.

    Args:
        value: Any document node.

    Returns:
        bool: True for strings made of the ``@`` sentinel followed by a name.

    Examples:
        >>> is_reference("@customer")
        True
        >>> is_reference("mail@example.com")
        False
        >>> is_reference("@")
        False
        >>> is_reference(42)
        False
    """
    return isinstance(value, str) and len(value) > 1 and value.startswith(REFERENCE_PREFIX)


def reference_name(token: str) -> str:
    """Strip the sentinel from a reference token.

    Args:
        token: A reference token.

    Returns:
        str: The referenced fixture name.

    Examples:
        >>> reference_name("@order_1")
        'order_1'
    """
    return token[len(REFERENCE_PREFIX) :]


def escape_key(key: Any) -> str:
    r"""Escape a mapping key for use as one path segment.

    Examples:
        >>> escape_key("city")
        'city'
        >>> print(escape_key("meta.owner"))
        meta\.owner
    """
    return str(key).replace(PATH_ESCAPE, PATH_ESCAPE * 2).replace(PATH_SEPARATOR, PATH_ESCAPE + PATH_SEPARATOR)


def join_path(prefix: str, key: Any) -> str:
    r"""Append a mapping key to a dotted path.

    Examples:
        >>> join_path("", "a")
        'a'
        >>> join_path("a", 1)
        'a.1'
        >>> print(join_path("a", "b.c"))
        a.b\.c
    """
    segment = escape_key(key)
    return f"{prefix}{PATH_SEPARATOR}{segment}" if prefix else segment


def split_path(path: str) -> List[str]:
    r"""Split a dotted path into its unescaped keys.

    Examples:
        >>> split_path("a.b")
        ['a', 'b']
        >>> split_path(r"meta\.owner.id")
        ['meta.owner', 'id']
    """
    parts: List[str] = []
    current: List[str] = []
    chars = iter(path)
    for char in chars:
        if char == PATH_ESCAPE:
            current.append(next(chars, PATH_ESCAPE))
        elif char == PATH_SEPARATOR:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def iter_references(node: Node, path: str = "") -> Iterator[Tuple[str, str]]:
    """Yield ``(field_path, fixture_name)`` for every reference token in a node.

    Mappings are walked key by key, sequences element by element. Tokens
    nested anywhere inside a sequence are reported under the sequence path.

    Args:
        node: Document node to walk.
        path: Path of ``node`` inside its root document.

    Yields:
        Tuple[str, str]: Field path and referenced fixture name.

    Examples:
        >>> list(iter_references({"a": {"b": "@x"}, "c": [{"d": "@y"}]}))
        [('a.b', 'x'), ('c', 'y')]
    """
    if isinstance(node, dict):
        for key, value in node.items():
            yield from iter_references(value, join_path(path, key))
    elif isinstance(node, list):
        for item in node:
            for _, name in iter_references(item, path):
                yield path, name
    elif is_reference(node):
        yield path, reference_name(node)


def clone(node: Node) -> Node:
    """Return an independent deep copy of a node."""
    return copy.deepcopy(node)


def deep_merge(base: Dict[str, Node], override: Dict[str, Node]) -> Dict[str, Node]:
    """Merge two mappings recursively, ``override`` winning on conflicts.

    Nested mappings present on both sides are merged; any other value from
    ``override`` replaces the base value. Neither argument is modified.

    Args:
        base: Lower layer.
        override: Upper layer.

    Returns:
        Dict[str, Node]: A new merged mapping.

    Examples:
        >>> deep_merge({"a": 1, "b": 2}, {"b": 3, "c": 4})
        {'a': 1, 'b': 3, 'c': 4}
        >>> deep_merge({"l": [1, 2]}, {"l": [3]})
        {'l': [3]}
    """
    merged = copy.deepcopy(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_path(node: Node, path: str, default: Any = None) -> Any:
    """Read the value at a dotted path.

    Examples:
        >>> get_path({"a": {"b": 1}}, "a.b")
        1
        >>> get_path({"a": 1}, "a.b", "n/a")
        'n/a'
    """
    current: Any = node
    for part in split_path(path):
        if not isinstance(current, dict):
            return default
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return default
    return current


def remove_path(node: Node, path: str) -> None:
    """Delete the field at a dotted path in place; missing paths are ignored.

    Examples:
        >>> doc = {"a": {"b": 1, "c": 2}, "d": 3}
        >>> remove_path(doc, "a.b")
        >>> remove_path(doc, "x.y")
        >>> doc
        {'a': {'c': 2}, 'd': 3}
    """
    *parents, leaf = split_path(path)
    current: Any = node
    for part in parents:
        if not isinstance(current, dict):
            return
        current = current.get(part)
    if isinstance(current, dict):
        current.pop(leaf, None)


def set_path(node: Dict[str, Node], path: str, value: Node) -> None:
    """Assign a value at a dotted path, creating intermediate mappings.

    Examples:
        >>> doc = {}
        >>> set_path(doc, "a.b", 1)
        >>> doc
        {'a': {'b': 1}}
    """
    *parents, leaf = split_path(path)
    current = node
    for part in parents:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[leaf] = value
