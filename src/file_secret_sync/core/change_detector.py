"""Snapshot comparison."""

from typing import Mapping


def has_data_changed(old_data: Mapping[str, bytes], new_data: Mapping[str, bytes]) -> bool:
    """Return True if ``new_data`` differs from ``old_data``.
    
    Equal cardinality plus every new key present in the old data with
    byte-identical content implies the two mappings are equal.
    """
    if len(old_data) != len(new_data):
        return True
    
    for key, new_value in new_data.items():
        if key not in old_data:
            return True
        if bytes(old_data[key]) != bytes(new_value):
            return True
    
    return False
