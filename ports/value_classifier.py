"""
Port: ValueClassifier
Odpowiedzialność: mapowanie wartości wyniku ewaluacji na typowany parametr FHIR.
"""
from typing import Protocol, runtime_checkable

from contracts import RawValue, TaggedParameter


@runtime_checkable
class ValueClassifier(Protocol):
    def classify(self, value: RawValue, full_fidelity: bool) -> TaggedParameter:
        """
        Maps one evaluated value to a TaggedParameter with at most one value[x].
        full_fidelity=True: unclassifiable values carry a JSON fallback extension.
        full_fidelity=False: unclassifiable values are reduced to their field path.
        Never raises on unknown value shapes.
        """
        ...
