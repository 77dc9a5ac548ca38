#!/usr/bin/env python3
"""
fhirpath_debug.py — CLI narzędzie do debugowania wyrażeń FHIRPath.

Działa całkowicie lokalnie — nie wymaga uruchomionego serwera API.

Konfiguracja: zmienne środowiskowe z prefiksem FHIRPATH_DEBUG_
lub plik .env (np. FHIRPATH_DEBUG_FHIR_MODEL=r5).

Podkomendy:
    tree  — wyświetl uproszczone drzewo wyrażenia (parseDebugTree)
    eval  — ewaluuj wyrażenie na zasobie z pliku JSON

Użycie:
    python fhirpath_debug.py tree -e "Patient.name.given"
    python fhirpath_debug.py tree -e "Patient.name.where(use = 'official')" --raw
    python fhirpath_debug.py eval -e "name.given" -r patient.json
    python fhirpath_debug.py eval -e "%limit + 1" -r patient.json --var limit=4
"""
from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table


# -- helpers ---------------------------------------------------------------

_CONSOLE: Console | None = None


def _console() -> Console:
    global _CONSOLE
    if _CONSOLE is None:
        _CONSOLE = Console(highlight=False)
    return _CONSOLE


def _safe_terminal_text(value: Any) -> str:
    s = str(value)
    encoding = sys.stdout.encoding or "utf-8"
    try:
        s.encode(encoding)
        return s
    except UnicodeEncodeError:
        return s.encode(encoding, errors="replace").decode(encoding, errors="replace")


def _short(value: Any, limit: int = 64) -> str:
    s = _safe_terminal_text(value).replace("\n", " ").strip()
    if len(s) <= limit:
        return s
    return s[: limit - 3] + "..."


def _parameter_value(param: Any) -> str:
    slots = param.populated_slots()
    if slots:
        value = getattr(param, slots[0])
        if hasattr(value, "to_fhir"):
            value = value.to_fhir()
        return json.dumps(value, ensure_ascii=False) if not isinstance(value, str) else value
    if param.extension:
        return f"[ext] {param.extension[-1].value_string}"
    return ""


def _print_parameters_table(title: str, params: list[Any]) -> None:
    table = Table(title=f"{title} [{len(params)}]", box=box.ASCII, show_lines=False)
    table.add_column("#", justify="right", no_wrap=True)
    table.add_column("Name", no_wrap=True, style="cyan")
    table.add_column("Value")
    for idx, param in enumerate(params, 1):
        table.add_row(str(idx), _safe_terminal_text(param.name), _short(_parameter_value(param), 72))
    _console().print(table)


def _print_debug_trace_table(snapshots: list[Any]) -> None:
    table = Table(title=f"Debug trace [{len(snapshots)}]", box=box.ASCII, show_lines=False)
    table.add_column("Node", style="cyan")
    table.add_column("Values", justify="right", no_wrap=True)
    for part in snapshots:
        table.add_row(_short(part.name, 60), str(len(part.part or [])))
    _console().print(table)


def _engine(model: str | None):
    from adapters.path_engine.fhirpathpy_engine import FhirpathpyEngine
    from config import Settings

    return FhirpathpyEngine(model or Settings().fhir_model)


def _parse_var(raw: str) -> tuple[str, Any]:
    name, sep, value = raw.partition("=")
    if not sep:
        print(f"Błąd: zmienna w postaci name=value, otrzymano {raw!r}", file=sys.stderr)
        sys.exit(1)
    try:
        return name, json.loads(value)
    except json.JSONDecodeError:
        return name, value


# -- commands --------------------------------------------------------------

def _tree(args: argparse.Namespace) -> None:
    from adapters.ast_simplifier.display_tree_simplifier import DisplayTreeSimplifier

    raw_tree = _engine(args.model).parse(args.expression)
    if args.raw:
        _console().print_json(json.dumps(raw_tree.model_dump(by_alias=True, exclude_none=True)))
        return
    display_tree = DisplayTreeSimplifier().simplify(raw_tree)
    _console().print_json(json.dumps(display_tree.to_json_dict()))


def _eval(args: argparse.Namespace) -> None:
    from adapters.ast_simplifier.display_tree_simplifier import DisplayTreeSimplifier
    from adapters.evaluation_service import EvaluationService
    from adapters.value_classifier.parameter_classifier import ParameterClassifier
    from contracts import EvaluationRequest

    try:
        with open(args.resource, encoding="utf-8") as fh:
            resource = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Błąd odczytu zasobu: {e}", file=sys.stderr)
        sys.exit(1)

    engine = _engine(args.model)
    service = EvaluationService(
        engine=engine,
        simplifier=DisplayTreeSimplifier(),
        classifier=ParameterClassifier(),
        fhir_model=engine.model_name,
    )
    request = EvaluationRequest(
        expression=args.expression,
        resource=resource,
        variables=dict(_parse_var(v) for v in args.var),
    )
    try:
        output = service.evaluate(request)
    except Exception as e:
        print(f"Błąd ewaluacji: {e}", file=sys.stderr)
        sys.exit(1)

    _, result, debug_trace = output.parameter
    parts = result.part or []
    _print_parameters_table("Result", [p for p in parts if p.name != "trace"])
    for call in (p for p in parts if p.name == "trace"):
        _print_parameters_table(f"trace({call.value_string})", call.part or [])
    if not args.quiet:
        _print_debug_trace_table(debug_trace.part or [])


def main() -> None:
    parser = argparse.ArgumentParser(description="FHIRPath debug — lokalne narzędzie CLI")
    parser.add_argument("--model", help="Model FHIR (r4, r5, stu3, dstu2)")
    sub = parser.add_subparsers(dest="command", required=True)

    # tree
    p = sub.add_parser("tree", help="Wyświetl uproszczone drzewo wyrażenia")
    p.add_argument("--expression", "-e", required=True, help="Wyrażenie FHIRPath")
    p.add_argument("--raw", action="store_true", help="Surowe drzewo parsera")

    # eval
    p = sub.add_parser("eval", help="Ewaluuj wyrażenie na zasobie z pliku")
    p.add_argument("--expression", "-e", required=True, help="Wyrażenie FHIRPath")
    p.add_argument("--resource", "-r", required=True, help="Plik JSON z zasobem FHIR")
    p.add_argument("--var", action="append", default=[], metavar="NAME=VALUE",
                   help="Zmienna %%NAME (wartość JSON lub tekst)")
    p.add_argument("--quiet", "-q", action="store_true", help="Bez tabeli debug-trace")

    args = parser.parse_args()

    commands = {
        "tree": _tree,
        "eval": _eval,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
