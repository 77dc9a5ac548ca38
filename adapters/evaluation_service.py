"""
EvaluationService — orkiestracja jednego żądania $fhirpath:
  parse → uproszczenie drzewa → ewaluacja z DebugTracer → odpowiedź Parameters.
"""
from __future__ import annotations

import logging

from adapters.response.parameters_builder import ParametersBuilder
from adapters.trace.debug_tracer import DebugTracer
from contracts import EvaluationRequest, Parameters
from ports.ast_simplifier import AstSimplifier
from ports.path_engine import PathEngine
from ports.value_classifier import ValueClassifier

logger = logging.getLogger("fhirpath_debug.evaluation_service")


class EvaluationService:
    def __init__(
        self,
        engine: PathEngine,
        simplifier: AstSimplifier,
        classifier: ValueClassifier,
        fhir_model: str = "r4",
    ) -> None:
        self._engine = engine
        self._simplifier = simplifier
        self._builder = ParametersBuilder(classifier)
        self._fhir_model = fhir_model

    @property
    def evaluator_label(self) -> str:
        return f"{self._engine.name}-{self._engine.version} ({self._fhir_model})"

    def evaluate(self, request: EvaluationRequest) -> Parameters:
        """
        Evaluates one request. Parser and engine errors propagate to the caller.
        """
        expression = request.expression
        raw_tree = self._engine.parse(expression)
        display_tree = self._simplifier.simplify(raw_tree)

        logger.info("Evaluating FHIRPath expression: %s", expression)
        tracer = DebugTracer()
        results = self._engine.evaluate(request.resource, expression, request.variables, tracer)

        if logger.isEnabledFor(logging.DEBUG):
            for line in tracer.log_lines(expression):
                logger.debug(line)
        logger.info(
            "Result: %d value(s), %d trace call(s), %d snapshot(s)",
            len(results), len(tracer.trace_calls), len(tracer.snapshots),
        )

        return self._builder.build(
            expression=expression,
            evaluator=self.evaluator_label,
            display_tree=display_tree,
            raw_tree=raw_tree,
            results=results,
            trace_calls=tracer.trace_calls,
            snapshots=tracer.snapshots,
        )
