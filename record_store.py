"""
Line-numbered record store on top of the Huffman codec.

Every named store is an artifact pair under the configured root:
    <name>       the encoded blob, one ASCII '0'/'1' byte per bit
    <name>_tree  the serialized Huffman tree (see tree_io)

Records are lines of the form "<N>-)<payload>\\n" numbered 1..k in physical order.
Every mutation reads and decodes the whole store, changes the text and rewrites both
artifacts from scratch.

Space is stored under the substitute symbol "_", so record text may not contain a
literal "_" or any character above one byte; write, append and edit return
INVALID_ARGUMENT for such text (e.g. "Email:john_doe@x.com") and leave the store as is.
"""

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path
from typing import List, Optional

from huffman import (build_huffman_tree, frequency_table, generate_huffman_codes,
                     huffman_decode, huffman_encode, leaf_frequencies)
from settings import StoreConfig
from store_errors import (CorruptError, InvalidArgumentError, IOFailureError,
                          NotFoundError, Result, StoreError, as_result)
from tree_io import deserialize_tree, serialize_tree

logger = logging.getLogger(__name__)

RECORD_DELIMITER = "-)"
DIGITS = "0123456789"


# Record grammar

def format_record(number: int, payload: str) -> str:
    return f"{number}{RECORD_DELIMITER}{payload}\n"


def split_records(text: str) -> List[str]:
    """Record lines without their newlines; empty lines are skipped."""
    return [line for line in text.split("\n") if line]


def join_records(lines: List[str]) -> str:
    return "".join(line + "\n" for line in lines)


def record_number(line: str) -> int:
    pos = line.find(RECORD_DELIMITER)
    prefix = line[:pos] if pos > 0 else ""
    if not prefix or any(ch not in DIGITS for ch in prefix):
        raise CorruptError(f"record without a line number: {line!r}")
    return int(prefix)


# Artifact pair codec

def encode_text(text: str) -> tuple[bytes, bytes]:
    """Return (blob, tree) artifacts for text. Validates the text before anything is written."""
    ft = frequency_table(text)
    if not ft:
        return b"", b""
    root = build_huffman_tree(ft)
    code_map = generate_huffman_codes(root)
    bits = huffman_encode(text, code_map)
    return bits.encode("ascii"), serialize_tree(root).encode("latin-1")


def decode_pair(blob: bytes, tree: bytes) -> str:
    """
    Decode an artifact pair back to text.

    The leaf frequencies stored in the tree must match the symbol counts of the decoded
    text. A blob written against a different tree (a torn pair) fails that check and is
    reported as corrupt rather than returned as wrong text.
    """
    root = deserialize_tree(tree.decode("latin-1"))
    bits = blob.decode("latin-1")
    if root is None:
        if bits:
            raise CorruptError("encoded blob present but the tree is empty")
        return ""

    text = huffman_decode(bits, root)
    if frequency_table(text) != leaf_frequencies(root):
        raise CorruptError("encoded blob does not match its tree (torn pair)")
    return text


def _log_failure(operation: str, kind: str, exc: StoreError) -> None:
    logger.warning("File operation failed (%s, %s): %s", operation, kind, exc)


class RecordStore:
    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig.from_env()

    # Physical I/O

    def _paths(self, name: str) -> tuple[Path, Path]:
        if not name or "/" in name or os.sep in name:
            raise InvalidArgumentError(f"invalid store name {name!r}")
        return self.config.content_path(name), self.config.tree_path(name)

    @staticmethod
    def _replace(path: Path, data: bytes) -> None:
        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            raise IOFailureError(f"cannot write {path}: {exc}") from exc

    def _load(self, name: str) -> str:
        content_path, tree_path = self._paths(name)
        try:
            with open(content_path, "rb") as f:
                blob = f.read()
            with open(tree_path, "rb") as f:
                tree = f.read()
        except OSError as exc:
            raise NotFoundError(f"there is no record store {name!r}: {exc}") from exc
        return decode_pair(blob, tree)

    def _store(self, name: str, text: str) -> None:
        content_path, tree_path = self._paths(name)
        blob, tree = encode_text(text)
        # content first, then tree; a failure in between leaves a torn pair
        self._replace(content_path, blob)
        self._replace(tree_path, tree)
        logger.debug("Rewrote store %r (%d chars, %d bits)", name, len(text), len(blob))

    # Public operations, all returning Result

    @as_result(_log_failure)
    def write(self, name: str, text: str, is_new: bool = False) -> None:
        """Replace the store with text. Text containing "_" or wider-than-byte characters is rejected."""
        if is_new:
            text = format_record(1, text)
        self._store(name, text)

    @as_result(_log_failure)
    def read(self, name: str) -> str:
        return self._load(name)

    @as_result(_log_failure)
    def read_raw(self, name: str) -> bytes:
        content_path, _ = self._paths(name)
        try:
            with open(content_path, "rb") as f:
                return f.read().replace(b"\r", b"")
        except OSError as exc:
            raise NotFoundError(f"there is no record store {name!r}: {exc}") from exc

    @as_result(_log_failure)
    def records(self, name: str) -> List[str]:
        return split_records(self._load(name))

    @as_result(_log_failure)
    def append(self, name: str, payload: str) -> None:
        text = self._load(name)
        lines = split_records(text)
        next_number = record_number(lines[-1]) + 1 if lines else 1
        if text and not text.endswith("\n"):
            text += "\n"
        self._store(name, text + format_record(next_number, payload))

    @as_result(_log_failure)
    def edit(self, name: str, line_number: int, payload: str) -> None:
        lines = split_records(self._load(name))
        if not 1 <= line_number <= len(lines):
            raise InvalidArgumentError(f"you can only edit existing lines (1..{len(lines)}), got {line_number}")
        lines[line_number - 1] = format_record(line_number, payload).rstrip("\n")
        self._store(name, join_records(lines))

    @as_result(_log_failure)
    def delete(self, name: str, line_number: int) -> None:
        lines = split_records(self._load(name))
        if not 1 <= line_number <= len(lines):
            raise InvalidArgumentError(f"you can only erase existing lines (1..{len(lines)}), got {line_number}")
        del lines[line_number - 1]

        renumbered = []
        for line in lines:
            number = record_number(line)
            if number > line_number: # close the gap left by the deleted record
                line = f"{number - 1}{line[line.find(RECORD_DELIMITER):]}"
            renumbered.append(line)
        self._store(name, join_records(renumbered))


# Module-level shortcuts backed by a store configured from the environment

_default_store: Optional[RecordStore] = None


def default_store() -> RecordStore:
    global _default_store
    if _default_store is None:
        _default_store = RecordStore(StoreConfig.from_env())
    return _default_store


def write(name: str, text: str, is_new: bool = False) -> Result[None]:
    return default_store().write(name, text, is_new)


def read(name: str) -> Result[str]:
    return default_store().read(name)


def append(name: str, payload: str) -> Result[None]:
    return default_store().append(name, payload)


def edit(name: str, line_number: int, payload: str) -> Result[None]:
    return default_store().edit(name, line_number, payload)


def delete(name: str, line_number: int) -> Result[None]:
    return default_store().delete(name, line_number)
