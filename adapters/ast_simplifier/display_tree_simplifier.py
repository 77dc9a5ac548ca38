"""
Adapter: DisplayTreeSimplifier
Implementuje port AstSimplifier — jedno rekurencyjne przejście bottom-up
po drzewie parsera FHIRPath.

Kolejność reguł (pierwsza pasująca wygrywa):
  1. literały        → ConstantExpression + ReturnType
  2. Quantity        → "<wartość> <jednostka>"
  3. węzły-opakowania (FunctionInvocation, Unit, LiteralTerm, TermExpression,
     ExternalConstantTerm) → jedyne dziecko
  4. MemberInvocation(Identifier)  → ChildExpression
  5. ExternalConstant(Identifier)  → VariableRefExpression
  6. Functn(Identifier[, ParamList]) → FunctionCallExpression
  7. InvocationTerm  → dziecko z dołożonym AxisExpression ("builtin.that")
  8. InvocationExpression → prawe dziecko z lewym jako pierwszym argumentem

Węzły nie są modyfikowane w miejscu — każda reguła zwraca nowy węzeł.
"""
from __future__ import annotations

from typing import Callable, Optional

from contracts import DisplayNode, RawNode

CONSTANT_EXPRESSION = "ConstantExpression"
CHILD_EXPRESSION = "ChildExpression"
VARIABLE_REF_EXPRESSION = "VariableRefExpression"
FUNCTION_CALL_EXPRESSION = "FunctionCallExpression"
AXIS_EXPRESSION = "AxisExpression"
SCOPE_NODE_NAME = "builtin.that"

# literał → (ReturnType, prefiks do usunięcia, czy usunąć końcowy cudzysłów)
_LITERALS: dict[str, tuple[str, str, bool]] = {
    "StringLiteral":   ("string", "'", True),
    "BooleanLiteral":  ("boolean", "", False),
    "NumberLiteral":   ("Number (decimal or integer)", "", False),
    "DateLiteral":     ("date", "@", False),
    "DateTimeLiteral": ("dateTime", "@", False),
    "TimeLiteral":     ("time", "@T", False),
    "QuantityLiteral": ("Quantity", "", False),
}

_PASS_THROUGH = {
    "FunctionInvocation",
    "Unit",
    "LiteralTerm",
    "TermExpression",
    "ExternalConstantTerm",
}

# wrappery, które przenoszą swoją pozycję na dziecko
_POSITION_PROPAGATING = {"LiteralTerm"}

_Rule = Callable[[DisplayNode], Optional[DisplayNode]]


def _strip_quotes(text: str, quote: str = "'") -> str:
    if len(text) >= 2 and text.startswith(quote) and text.endswith(quote):
        return text[1:-1]
    return text


def _sole_child(node: DisplayNode, kind: str | None = None) -> DisplayNode | None:
    if node.children is None or len(node.children) != 1:
        return None
    child = node.children[0]
    if kind is not None and child.kind != kind:
        return None
    return child


def _quantity_name(text: str, unit: str) -> str:
    """Np. 5'mg' + 'mg' → "5 mg"; tekst może zawierać spację przed jednostką."""
    number = text
    if unit and number.endswith(unit):
        number = number[: -len(unit)]
    else:
        number = number.split(" ", 1)[0]
    return f"{number.strip()} {_strip_quotes(unit)}"


def _with_leading_argument(node: DisplayNode, argument: DisplayNode) -> DisplayNode:
    return node.model_copy(update={"children": [argument, *(node.children or [])]})


# -- Reguły ----------------------------------------------------------------

def _literal(node: DisplayNode) -> DisplayNode | None:
    entry = _LITERALS.get(node.kind)
    if entry is None:
        return None
    return_type, prefix, closing = entry

    if node.kind == "QuantityLiteral":
        child = _sole_child(node)
        if child is None:
            name = node.name
        elif child.kind == "Quantity":
            name = child.name
        else:
            # jednostka bezpośrednio pod literałem
            name = _quantity_name(node.name, child.name)
        return node.model_copy(update={
            "kind": CONSTANT_EXPRESSION,
            "return_type": return_type,
            "name": name,
            "children": None,
        })

    name = node.name
    if closing:
        name = _strip_quotes(name, prefix)
    elif prefix and name.startswith(prefix):
        name = name[len(prefix):]
    return node.model_copy(update={
        "kind": CONSTANT_EXPRESSION,
        "return_type": return_type,
        "name": name,
    })


def _quantity(node: DisplayNode) -> DisplayNode | None:
    if node.kind != "Quantity":
        return None
    unit = _sole_child(node)
    if unit is None:
        return None
    return node.model_copy(update={
        "name": _quantity_name(node.name, unit.name),
        "children": None,
    })


def _pass_through(node: DisplayNode) -> DisplayNode | None:
    if node.kind not in _PASS_THROUGH:
        return None
    child = _sole_child(node)
    if child is None:
        return None
    if node.kind in _POSITION_PROPAGATING:
        return child.model_copy(update={
            "line": node.line,
            "column": node.column,
            "length": node.length,
        })
    return child


def _renamed_identifier(source_kind: str, target_kind: str) -> _Rule:
    def rule(node: DisplayNode) -> DisplayNode | None:
        if node.kind != source_kind:
            return None
        identifier = _sole_child(node, "Identifier")
        if identifier is None:
            return None
        return node.model_copy(update={
            "kind": target_kind,
            "name": identifier.name,
            "children": None,
        })
    return rule


def _function(node: DisplayNode) -> DisplayNode | None:
    if node.kind != "Functn" or not node.children:
        return None
    identifier = node.children[0]
    if identifier.kind != "Identifier":
        return None

    if len(node.children) == 2 and node.children[1].kind == "ParamList":
        return node.model_copy(update={
            "kind": FUNCTION_CALL_EXPRESSION,
            "name": identifier.name,
            "line": identifier.line,
            "column": identifier.column,
            "length": identifier.length,
            "children": node.children[1].children,
        })
    if len(node.children) == 1:
        return node.model_copy(update={
            "kind": FUNCTION_CALL_EXPRESSION,
            "name": identifier.name,
            "children": None,
        })
    return None


def _invocation_term(node: DisplayNode) -> DisplayNode | None:
    if node.kind != "InvocationTerm":
        return None
    child = _sole_child(node)
    if child is None:
        return None
    # niejawny $this staje się jawnym pierwszym argumentem
    scope = DisplayNode(kind=AXIS_EXPRESSION, name=SCOPE_NODE_NAME, return_type="")
    return _with_leading_argument(child, scope)


def _invocation_expression(node: DisplayNode) -> DisplayNode | None:
    if node.kind != "InvocationExpression" or node.children is None or len(node.children) < 2:
        return None
    target, invocation = node.children[0], node.children[1]
    return _with_leading_argument(invocation, target)


_RULES: tuple[_Rule, ...] = (
    _literal,
    _quantity,
    _pass_through,
    _renamed_identifier("MemberInvocation", CHILD_EXPRESSION),
    _renamed_identifier("ExternalConstant", VARIABLE_REF_EXPRESSION),
    _function,
    _invocation_term,
    _invocation_expression,
)


class DisplayTreeSimplifier:
    """Uproszczenie drzewa parsera FHIRPath do drzewa prezentacji."""

    # -- AstSimplifier protocol --------------------------------------------

    def simplify(self, node: RawNode | DisplayNode) -> DisplayNode:
        display = self._base(node)
        for rule in _RULES:
            rewritten = rule(display)
            if rewritten is not None:
                return rewritten
        return display

    # -- Prywatne ----------------------------------------------------------

    def _base(self, node: RawNode | DisplayNode) -> DisplayNode:
        """Mapowanie 1:1 (kind, name, pozycja) z rekurencją po dzieciach."""
        children = [self.simplify(child) for child in node.children or []]

        if isinstance(node, DisplayNode):
            return node.model_copy(update={"children": children or None})

        line = column = None
        if node.start is not None:
            line, column = node.start.line, node.start.column
        return DisplayNode(
            kind=node.kind,
            name=node.text if node.text is not None else (node.delimited_text or ""),
            children=children,
            line=line,
            column=column,
            length=node.length or None,
        )
