"""Foreign key column -> referenced table naming conventions."""

from typing import Optional, Protocol

import inflection


class NameResolver(Protocol):
    """Maps a foreign-key-shaped column name to the table it references."""

    def is_foreign_key(self, column: str) -> bool:
        ...

    def table_for(self, column: str) -> Optional[str]:
        ...


class InflectionNameResolver:
    """
    Rails convention: ``author_id`` references ``authors``.

    The stem is pluralised with the ``inflection`` package, a port of the
    ActiveSupport inflector, so irregular plurals (``person_id`` ->
    ``people``) follow the same rules as the application that created the
    tables.
    """

    def __init__(self, suffix: str = "_id"):
        self.suffix = suffix

    def is_foreign_key(self, column: str) -> bool:
        return column.endswith(self.suffix) and len(column) > len(self.suffix)

    def table_for(self, column: str) -> Optional[str]:
        if not self.is_foreign_key(column):
            return None
        return inflection.pluralize(column[: -len(self.suffix)])
