from typing import Optional


def quote_ident(name: str) -> str:
    """
    Quote PostgreSQL identifier with double quotes and escape internal quotes.

    Raises:
        ValueError: If name is empty or longer than PostgreSQL allows
    """
    if not name or not isinstance(name, str):
        raise ValueError("Identifier name must be non-empty string")

    if len(name) > 63:  # PostgreSQL limit
        raise ValueError("Identifier too long (max 63 characters)")

    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def quote_qualified(schema: Optional[str], table: str) -> str:
    """
    Quote PostgreSQL identifier with optional schema qualification.

    Examples:
        >>> quote_qualified("public", "git_refs")
        '"public"."git_refs"'
        >>> quote_qualified(None, "git_refs")
        '"git_refs"'
    """
    if not table or not isinstance(table, str):
        raise ValueError("Table name must be non-empty string")

    if schema and str(schema).strip():
        return f"{quote_ident(str(schema))}.{quote_ident(table)}"
    return quote_ident(table)


def copy_text_value(value: Optional[str]) -> str:
    r"""Encode one field for COPY ... FROM STDIN (text format).

    ``None`` becomes ``\N`` (SQL NULL); an empty string stays empty so it is
    stored as ``''``.
    """
    if value is None:
        return r"\N"
    return (
        str(value)
        .replace("\\", "\\\\")
        .replace("\t", "\\t")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
