"""
Variable Expansion - `{{name}}` templates over lists of values.

    >>> expand_variables("A {{c}} {{s}}", {"c": ["red", "blue"], "s": ["cat", "dog"]})
    ['A red cat', 'A red dog', 'A blue cat', 'A blue dog']
"""

from __future__ import annotations

import itertools
from typing import Mapping, Sequence


def expand_variables(template: str, variables: Mapping[str, Sequence[str]]) -> list[str]:
    """
    Produce one string per combination of variable values.

    Combinations follow declaration order with the first variable varying
    slowest. Every occurrence of `{{name}}` is replaced literally; a
    variable with no values yields no combinations at all.

    Args:
        template: Text containing `{{name}}` placeholders
        variables: Variable name -> candidate values, in declaration order

    Returns:
        Expanded strings; `[template]` when no variables are declared
    """
    names = list(variables)
    if not names:
        return [template]

    expanded: list[str] = []
    for combo in itertools.product(*(variables[name] or [] for name in names)):
        text = template
        for name, value in zip(names, combo):
            text = text.replace("{{" + name + "}}", str(value))
        expanded.append(text)
    return expanded
