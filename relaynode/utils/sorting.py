# relaynode/utils/sorting.py

from typing import Iterable, Mapping

from pymongo import ASCENDING, DESCENDING

def build_sort(sort_spec: Iterable[Mapping[str, str]]):
    """Turn ``[{"timestamp": "asc"}, ...]`` into a pymongo sort list."""
    sort = []
    for entry in sort_spec:
        for field, order in entry.items():
            if order not in ("asc", "desc"):
                raise ValueError(f"Unsupported sort order for {field}: {order}")
            sort.append((field, DESCENDING if order == "desc" else ASCENDING))
    return sort
