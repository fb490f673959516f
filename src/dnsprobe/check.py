from __future__ import annotations

from typing import Iterable

from .config import ExpectedAnswer
from .errors import TypeMismatchError, ValueMismatchError
from .models import Answer


def check_answers(answers: Iterable[Answer], expected: ExpectedAnswer) -> None:
    """
    Compare decoded answers against the expectation.

    Answers are scanned in the order received and the first mismatch wins. For
    each answer the value is checked before the type.

    An empty answer list passes whatever the expectation is: a probe that got no
    matching record still reports up.

    Raises:
        ValueMismatchError / TypeMismatchError
    """
    if expected.is_empty:
        return

    for a in answers:
        if expected.value is not None and a.value.lower() != expected.value:
            raise ValueMismatchError(a.value.lower(), expected.value)
        if expected.record_type is not None and a.record_type != expected.record_type:
            raise TypeMismatchError(a.record_type, expected.record_type)
