"""Deterministic names for indexes and constraints."""

from __future__ import annotations

import hashlib
import re
from typing import Literal

IndexKind = Literal["unique", "foreign", "index"]

# PostgreSQL truncates identifiers at 63 bytes, MySQL rejects names over 64
MAX_INDEX_NAME_LENGTH = 60


def get_default_index_name(
    kind: IndexKind, collection: str, fields: str | list[str]
) -> str:
    """Build the default name of an index or constraint.

    The name is ``<collection>_<fields>_<kind>`` in lowercase. Names longer
    than ``MAX_INDEX_NAME_LENGTH`` keep a prefix of the plain name followed by
    an md5 digest of the full name, so they stay unique and reproducible.

    Example:
        >>> get_default_index_name("foreign", "articles", "author_id")
        'articles_author_id_foreign'
    """
    if isinstance(fields, str):
        fields = [fields]

    table = re.sub(r"[.\-]", "_", collection)
    index_name = f"{table}_{'_'.join(fields)}_{kind}".lower()

    if len(index_name) <= MAX_INDEX_NAME_LENGTH:
        return index_name

    suffix = f"__{hashlib.md5(index_name.encode()).hexdigest()}_{kind}"
    prefix = index_name[: MAX_INDEX_NAME_LENGTH - len(suffix)]
    return f"{prefix}{suffix}"
