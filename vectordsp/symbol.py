"""Interned symbols: cheap, hashable keys that map to unique strings."""

from __future__ import annotations

import functools
import threading
from typing import Optional, Union

HASH_TABLE_BITS = 12
HASH_TABLE_SIZE = 1 << HASH_TABLE_BITS
HASH_TABLE_MASK = HASH_TABLE_SIZE - 1

_UINT32_MASK = 0xFFFFFFFF

TextLike = Union[str, bytes]


def _to_text(text: TextLike) -> str:
    if isinstance(text, bytes):
        return text.decode("utf-8")
    return str(text)


def kr_hash(data: TextLike) -> int:
    """Return the 12-bit Kernighan & Ritchie hash of the UTF-8 bytes of data."""
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    accum = 0
    for byte in reversed(raw):
        signed = byte - 256 if byte >= 128 else byte
        accum = ((accum + signed) * 31) & _UINT32_MASK
    return accum & HASH_TABLE_MASK


class SymbolTable:
    """A thread-safe table assigning each distinct string a unique integer ID.

    IDs are handed out in creation order; ID 0 is the empty (null) symbol.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._texts: list[str] = []
        self._bins: list[list[int]] = [[] for _ in range(HASH_TABLE_SIZE)]
        self.clear()

    def clear(self) -> None:
        """Remove all symbols, leaving only the null entry."""
        with self._lock:
            self._texts = []
            for b in self._bins:
                b.clear()
            self._add_entry("", 0)

    def _add_entry(self, text: str, hash_value: int) -> int:
        new_id = len(self._texts)
        self._texts.append(text)
        self._bins[hash_value].append(new_id)
        return new_id

    def get_symbol_id(self, text: TextLike) -> int:
        """Return the ID for text, adding it to the table if it is new."""
        text = _to_text(text)
        h = kr_hash(text)
        with self._lock:
            for symbol_id in self._bins[h]:
                if self._texts[symbol_id] == text:
                    return symbol_id
            return self._add_entry(text, h)

    def get_text(self, symbol_id: int) -> str:
        """Return the text of the symbol with the given ID."""
        return self._texts[symbol_id]

    def hash_of_id(self, symbol_id: int) -> int:
        """Find the hash bin holding symbol_id; 0 if it is not present."""
        for h, b in enumerate(self._bins):
            if symbol_id in b:
                return h
        return 0

    def __len__(self) -> int:
        return len(self._texts)

    def dump(self) -> None:
        """Print all symbols in creation order and the non-empty hash bins."""
        print("-" * 57)
        print(f"{len(self._texts)} symbols:")
        for i, text in enumerate(self._texts):
            print(f"    ID {i} = {text}")
        for h, b in enumerate(self._bins):
            if b:
                entries = " ".join(f"{i} {self._texts[i]}" for i in b)
                print(f"#{h} {entries} ")

    def audit(self) -> bool:
        """Check that looking up each stored text yields its own ID."""
        for i, text in enumerate(list(self._texts)):
            found = self.get_symbol_id(text)
            if found != i or found > len(self._texts):
                print(f"SymbolTable: error in symbol table, line {i}:")
                print(f"    ID {i} = {text}, ID B = {found}")
                return False
        return True


_THE_TABLE = SymbolTable()


def symbol_table() -> SymbolTable:
    """Return the process-wide shared symbol table."""
    return _THE_TABLE


@functools.total_ordering
class Symbol:
    """An immutable interned string, compared and hashed by its table ID."""

    __slots__ = ("_id", "_table")

    def __init__(self, text: Union[TextLike, "Symbol"] = "",
                 table: Optional[SymbolTable] = None):
        if isinstance(text, Symbol):
            if table is None or table is text._table:
                self._table = text._table
                self._id = text._id
                return
            text = str(text)
        self._table = table if table is not None else symbol_table()
        self._id = self._table.get_symbol_id(text)

    @property
    def id(self) -> int:
        return self._id

    @property
    def table(self) -> SymbolTable:
        return self._table

    def __str__(self) -> str:
        return self._table.get_text(self._id)

    def __repr__(self) -> str:
        return f"Symbol({str(self)!r})"

    def __bool__(self) -> bool:
        return self._id != 0

    def _coerce(self, other) -> Optional["Symbol"]:
        if isinstance(other, Symbol):
            return other
        if isinstance(other, (str, bytes)):
            return Symbol(other, self._table)
        return None

    def __eq__(self, other) -> bool:
        o = self._coerce(other)
        if o is None:
            return NotImplemented
        if o._table is not self._table:
            return str(self) == str(o)
        return self._id == o._id

    def __lt__(self, other) -> bool:
        o = self._coerce(other)
        if o is None:
            return NotImplemented
        return self._id < o._id

    def __hash__(self) -> int:
        return self._id

    def __add__(self, other) -> "Symbol":
        o = self._coerce(other)
        if o is None:
            return NotImplemented
        return Symbol(str(self) + str(o), self._table)

    def begins_with(self, other) -> bool:
        """True if this symbol's text starts with other's text."""
        return str(self).startswith(str(other))

    def ends_with(self, other) -> bool:
        """True if this symbol's text ends with other's text."""
        return str(self).endswith(str(other))


def symbol_hash(symbol: Symbol) -> int:
    """Return the 12-bit hash of a symbol's text."""
    return kr_hash(str(symbol))