"""
Symbol Table
============

Per-run mapping from label names to addresses. A fresh table is created
for every assembly run; it is never shared between runs.

Names arrive already folded to uppercase by the lexer, so lookups are
case-insensitive with respect to the source text.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

from z80asm.errors import (
    DuplicateSymbolError,
    SourceLocation,
    UndefinedSymbolError,
)


@dataclass
class Symbol:
    """
    Symbol table entry.

    Attributes:
        name: Label name
        value: Address the label was bound to
        location: Where the label was defined
    """
    name: str
    value: int
    location: SourceLocation


class SymbolTable:
    """
    Label bindings for one assembly run.

    The first definition of a name wins; later definitions are reported
    by verify() rather than silently rebinding the label.
    """

    def __init__(self):
        self._symbols: dict[str, Symbol] = {}

    def define(self, name: str, value: int, location: SourceLocation) -> bool:
        """
        Bind name to value unless it is already bound.

        Returns:
            True if the symbol was added, False if it already existed
        """
        if name in self._symbols:
            return False
        self._symbols[name] = Symbol(name=name, value=value, location=location)
        return True

    def verify(self, name: str, location: SourceLocation) -> None:
        """
        Check that the definition at location is the one that was bound.

        Raises:
            DuplicateSymbolError: If the name was first bound elsewhere
        """
        existing = self._symbols.get(name)
        if existing is not None and existing.location != location:
            raise DuplicateSymbolError(
                name,
                location=location,
                original_location=existing.location,
            )

    def lookup(
        self,
        name: str,
        location: Optional[SourceLocation] = None,
        allow_undefined: bool = False,
    ) -> int:
        """
        Get the value of a symbol.

        Args:
            name: Symbol name
            location: Reference location for error reporting
            allow_undefined: Resolve unknown names to 0 instead of raising

        Raises:
            UndefinedSymbolError: If the symbol is not defined
        """
        if name in self._symbols:
            return self._symbols[name].value

        if allow_undefined:
            return 0

        raise UndefinedSymbolError(
            name,
            location=location,
            similar_symbols=self._find_similar_symbols(name),
        )

    def as_dict(self) -> dict[str, int]:
        """Return a name -> address mapping."""
        return {name: sym.value for name, sym in self._symbols.items()}

    def __contains__(self, name: str) -> bool:
        return name in self._symbols

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols.values())

    def __len__(self) -> int:
        return len(self._symbols)

    # =========================================================================
    # Suggestions
    # =========================================================================

    def _find_similar_symbols(self, name: str) -> list[str]:
        """
        Find symbols with similar names for error hints.

        Uses simple edit distance heuristic.
        """
        similar = []

        for sym in self._symbols:
            if abs(len(sym) - len(name)) <= 1 and self._edit_distance(name, sym) <= 2:
                similar.append(sym)

        return similar[:3]

    @staticmethod
    def _edit_distance(s1: str, s2: str) -> int:
        """Calculate Levenshtein edit distance between two strings."""
        if len(s1) < len(s2):
            s1, s2 = s2, s1

        distances = list(range(len(s2) + 1))
        for i, c1 in enumerate(s1):
            new_distances = [i + 1]
            for j, c2 in enumerate(s2):
                if c1 == c2:
                    new_distances.append(distances[j])
                else:
                    new_distances.append(1 + min(
                        distances[j],
                        distances[j + 1],
                        new_distances[-1],
                    ))
            distances = new_distances

        return distances[-1]
