"""
Port: AstSimplifier
Odpowiedzialność: przepisanie surowego drzewa parsera na drzewo do prezentacji.
"""
from typing import Protocol, runtime_checkable

from contracts import DisplayNode, RawNode


@runtime_checkable
class AstSimplifier(Protocol):
    def simplify(self, node: RawNode | DisplayNode) -> DisplayNode:
        """
        Rewrites a raw parse tree into a compact display tree.
        Pure and total: unknown node kinds pass through as generic nodes.
        Accepts an already simplified tree too; simplifying it again is a no-op.
        Never returns a node with an empty children list.
        """
        ...
