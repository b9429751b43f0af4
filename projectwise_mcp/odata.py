"""OData filter expressions for WSG queries.

String values are quoted OData-style: wrapped in single quotes with any
embedded single quote doubled, so ``O'Brien`` becomes ``'O''Brien'``.
Values without quotes render exactly as plain interpolation would.
"""


def literal(value):
    """Render a filter operand. ``None`` becomes ``null``."""
    if value is None:
        return "null"
    return "'" + str(value).replace("'", "''") + "'"


def eq(field, value):
    return f"{field} eq {literal(value)}"


def contains(field, value):
    return f"contains({field},{literal(value)})"


def and_(*clauses):
    return " and ".join(clauses)
