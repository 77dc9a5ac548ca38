"""
Pozycje węzłów w tekście wyrażenia.

Snapshoty śladu przechowują pozycję jako (linia, kolumna) liczone od 0;
UI potrzebuje przesunięcia liczonego od początku tekstu wyrażenia.
Etykiety "<offset>,<length>,<name>" służą jako nazwy części debug-trace.
"""
from __future__ import annotations

from contracts import TraceSnapshot


class PositionOutOfRangeError(ValueError):
    """Pozycja węzła wykracza poza tekst wyrażenia."""


def resolve_offset(source: str, line: int, column: int) -> int:
    """
    Zamienia (linia, kolumna) liczone od 0 na przesunięcie w tekście.
    Każda poprzedzająca linia wnosi swoją długość + 1 (znak nowej linii).
    Raises PositionOutOfRangeError when the line lies past the end of source.
    """
    lines = source.split("\n")
    if line < 0 or line >= len(lines):
        raise PositionOutOfRangeError(
            f"Line {line} is outside the expression ({len(lines)} line(s))"
        )
    position = column
    for preceding in lines[:line]:
        position += len(preceding) + 1
    return position


def _offset(source: str, snapshot: TraceSnapshot) -> int:
    return resolve_offset(source, snapshot.line or 0, snapshot.column or 0)


def _length(snapshot: TraceSnapshot) -> str:
    return "" if snapshot.length is None else str(snapshot.length)


def node_label(source: str, snapshot: TraceSnapshot) -> str:
    return f"{_offset(source, snapshot)},{_length(snapshot)},{snapshot.name}"


def format_label(source: str, snapshot: TraceSnapshot) -> str:
    """Etykieta do logów: node_label + liczności focus/result i rodzaj węzła."""
    return (
        f"{_offset(source, snapshot)},{_length(snapshot)},{snapshot.name}: "
        f"focus={len(snapshot.focus_values)} result={len(snapshot.values)}  type={snapshot.kind}"
    )
