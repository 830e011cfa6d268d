"""
Text form of a Huffman tree, stored next to the encoded blob.

Pre-order, one record per node:
    leaf      L<symbol>|<frequency>
    internal  I$|<frequency><left subtree><right subtree>

A newline symbol is written as the two characters backslash and 'n'. Space never
appears: it is already folded into the substitute symbol by frequency analysis.
Frequencies carry no terminator; the digits end at the next marker or at the end
of the stream.
"""

from __future__ import annotations

from typing import List

from huffman import INTERNAL_SYMBOL, HuffmanNode
from store_errors import CorruptError

LEAF_MARKER = 'L'
INTERNAL_MARKER = 'I'
DELIMITER = '|'
NEWLINE_ESCAPE = '\\n'
DIGITS = '0123456789'
MAX_DEPTH = 255 # a tree over the single-byte alphabet has at most 256 leaves


def serialize_tree(root: HuffmanNode | None) -> str:
    if root is None:
        return ''
    parts: List[str] = []

    def walk(node: HuffmanNode) -> None:
        if node.is_leaf:
            symbol = NEWLINE_ESCAPE if node.symbol == '\n' else node.symbol
            parts.append(f"{LEAF_MARKER}{symbol}{DELIMITER}{node.frequency}")
            return
        parts.append(f"{INTERNAL_MARKER}{INTERNAL_SYMBOL}{DELIMITER}{node.frequency}")
        walk(node.left)
        walk(node.right)

    walk(root)
    return ''.join(parts)


class _TreeReader:
    """Recursive-descent reader over a serialized tree."""

    def __init__(self, data: str):
        self.data = data
        self.pos = 0

    def _take(self, what: str) -> str:
        if self.pos >= len(self.data):
            raise CorruptError(f"serialized tree ends where {what} was expected (offset {self.pos})")
        ch = self.data[self.pos]
        self.pos += 1
        return ch

    def _symbol(self) -> str:
        ch = self._take("a symbol")
        # a backslash leaf is always followed by the delimiter, so "\n" is unambiguous
        if ch == '\\' and self.data.startswith('n', self.pos):
            self.pos += 1
            return '\n'
        return ch

    def _frequency(self) -> int:
        start = self.pos
        while self.pos < len(self.data) and self.data[self.pos] in DIGITS:
            self.pos += 1
        if self.pos == start:
            raise CorruptError(f"missing frequency digits at offset {start}")
        return int(self.data[start:self.pos])

    def node(self, depth: int = 0) -> HuffmanNode:
        if depth > MAX_DEPTH:
            raise CorruptError(f"serialized tree nests deeper than {MAX_DEPTH} levels at offset {self.pos}")
        marker = self._take("a node marker")
        if marker not in (LEAF_MARKER, INTERNAL_MARKER):
            raise CorruptError(f"unknown node marker {marker!r} at offset {self.pos - 1}")

        symbol = self._symbol()
        if self._take("a delimiter") != DELIMITER:
            raise CorruptError(f"expected {DELIMITER!r} at offset {self.pos - 1}")
        frequency = self._frequency()

        if marker == LEAF_MARKER:
            return HuffmanNode(symbol, frequency)
        left = self.node(depth + 1)
        right = self.node(depth + 1)
        return HuffmanNode(INTERNAL_SYMBOL, frequency, left, right)


def deserialize_tree(data: str) -> HuffmanNode | None:
    """Rebuild a tree; None for an empty stream (the tree of an empty store)."""
    if not data:
        return None
    reader = _TreeReader(data)
    root = reader.node()
    if reader.pos != len(data):
        raise CorruptError(f"trailing data after serialized tree at offset {reader.pos}")
    return root
