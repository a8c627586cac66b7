"""
Shared query semantics.

Every backend funnels its ``where`` and ``all`` results through these helpers
so matching, ordering and pagination are identical no matter how records are
stored. Index structures handled here are plain ``{value: [key, ...]}``
mappings, which the memory and key/value backends persist as-is.
"""

from itertools import islice
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, MutableMapping, Optional, Tuple

from ..config import IndexConfig, StoreConfig
from ..errors import ConstraintError
from ..keys import RecordKey
from .base import CursorOptions, Direction, Operator, QueryResult, Resource, SearchOptions

IndexMap = MutableMapping[str, List[RecordKey]]
Loader = Callable[[RecordKey], Optional[Resource]]


def index_value(record: Mapping[str, Any], path: str) -> Optional[str]:
    """Extract the value an index stores for ``record``; dotted paths walk nested mappings."""
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return None
        value = value[part]

    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def fold(value: Any) -> str:
    return str(value).lower()


def matches(operator: Operator, value: str, search: str) -> bool:
    """Compare an already folded index value against an already folded search value."""
    if operator in (Operator.EQUALS, Operator.EQUALS_MANY):
        return value == search
    if operator is Operator.INCLUDES:
        return search in value
    if operator is Operator.NOT_EQUALS:
        return value != search
    if operator is Operator.NOT_INCLUDES:
        return search not in value
    raise ValueError(f"Unsupported operator: {operator}")


def window(records: Iterable[Resource], options: CursorOptions) -> List[Resource]:
    """Skip ``offset`` records, then collect at most ``limit`` (falsy limit means all)."""
    stop = options.offset + options.limit if options.limit else None
    return list(islice(records, options.offset, stop))


def select(entries: Iterable[Tuple[str, RecordKey]], load: Loader, search: Any,
           options: SearchOptions) -> QueryResult:
    """
    Apply a ``where`` query to index entries.

    Args:
        entries: ``(index value, key)`` pairs, already in the requested direction
        load: Callable returning the record stored under a key, or None
        search: Value searched for
        options: Operator and pagination

    Returns:
        The first match (or None) for ``equals``, a list of matches otherwise
    """
    needle = fold(search)

    def _found() -> Iterator[Resource]:
        for value, key in entries:
            if not matches(options.operator, fold(value), needle):
                continue
            record = load(key)
            if record is not None:
                yield record

    if options.operator is Operator.EQUALS:
        return next(islice(_found(), options.offset, None), None)

    return window(_found(), options)


def scan(keys: Iterable[RecordKey], load: Loader, options: CursorOptions) -> List[Resource]:
    """Load records for ``keys`` (already in the requested direction) and paginate them."""
    loaded = (load(key) for key in keys)
    return window((record for record in loaded if record is not None), options)


def ordered_entries(index_map: Mapping[str, List[RecordKey]],
                    direction: Direction = Direction.ASC) -> List[Tuple[str, RecordKey]]:
    """Flatten an index into ``(value, key)`` pairs sorted by value, then write order."""
    entries = [(value, key) for value in sorted(index_map) for key in index_map[value]]
    if direction is Direction.DESC:
        entries.reverse()
    return entries


def ordered_keys(keys: Iterable[RecordKey], direction: Direction = Direction.ASC) -> List[RecordKey]:
    keys = list(keys)
    if direction is Direction.DESC:
        keys.reverse()
    return keys


def remove_from_index(index_map: IndexMap, key: RecordKey) -> None:
    for value in list(index_map):
        keys = index_map[value]
        if key in keys:
            keys.remove(key)
        if not keys:
            del index_map[value]


def update_indexes(store: StoreConfig, index_maps: Dict[str, IndexMap], key: RecordKey,
                   data: Mapping[str, Any]) -> None:
    """
    Point every index of ``store`` at the new values of ``key``.

    Unique indexes are checked before anything changes, so a rejected write
    leaves all indexes untouched.
    """
    values = {index.name: index_value(data, index.key_path) for index in store.indexes}

    for index in store.indexes:
        value = values[index.name]
        if not index.unique or value is None:
            continue
        holders = index_map_for(index_maps, index.name).get(value, [])
        if any(holder != key for holder in holders):
            raise ConstraintError(store.name, index.name, value)

    for index in store.indexes:
        index_map = index_map_for(index_maps, index.name)
        remove_from_index(index_map, key)
        value = values[index.name]
        if value is not None:
            index_map.setdefault(value, []).append(key)


def index_map_for(index_maps: Dict[str, IndexMap], name: str) -> IndexMap:
    if name not in index_maps:
        index_maps[name] = {}
    return index_maps[name]


def build_index(index: IndexConfig, records: Iterable[Tuple[RecordKey, Mapping[str, Any]]]) -> IndexMap:
    """
    Build the map of an index declared after records were written.

    Records are visited in primary order, so keys sharing a value keep
    their insertion order.
    """
    index_map: IndexMap = {}
    for key, record in records:
        value = index_value(record, index.key_path)
        if value is not None:
            index_map.setdefault(value, []).append(key)
    return index_map
