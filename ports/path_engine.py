"""
Port: PathEngine
Odpowiedzialność: parsowanie i ewaluacja wyrażeń FHIRPath (zewnętrzny silnik).
"""
from typing import Any, Optional, Protocol, runtime_checkable

from contracts import RawNode, RawValue


@runtime_checkable
class EvaluationTracer(Protocol):
    def on_node(
        self,
        node: RawNode,
        focus: list[RawValue],
        this: list[RawValue],
        result: list[RawValue],
        index: Optional[int] = None,
        total: Optional[list[RawValue]] = None,
    ) -> None:
        """
        Called by the engine after each evaluated parse tree node.
        index: $index inside iterating functions, total: $total inside aggregate().
        """
        ...

    def on_trace(self, label: str, values: list[RawValue]) -> None:
        """Called for every trace() invocation inside the expression."""
        ...


@runtime_checkable
class PathEngine(Protocol):
    name: str
    version: str

    def parse(self, expression: str) -> RawNode:
        """
        Parses an expression and returns the root expression node
        (without the EntireExpression wrapper).
        Raises on syntax errors.
        """
        ...

    def evaluate(
        self,
        resource: dict[str, Any],
        expression: str,
        variables: dict[str, Any],
        tracer: EvaluationTracer,
    ) -> list[RawValue]:
        """
        Evaluates an expression against a resource.
        variables: environment variables (%name) besides %resource/%rootResource.
        Reports visited nodes and trace() calls to the tracer, in visit order.
        Raises on evaluation errors.
        """
        ...
