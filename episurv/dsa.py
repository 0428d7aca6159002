"""
Sorted-list primitives
======================

The record store answers "which records match these months and these
diseases?" with sorted position lists. Combining two lists is a linear
two-pointer walk:

- `intersect_sorted`: positions present in both lists (AND)
- `union_sorted`: positions present in either list, without duplicates (OR)
"""

from __future__ import annotations
from typing import Iterable, List


def intersect_sorted(a: List[int], b: List[int]) -> List[int]:
    """Two-pointer intersection for sorted integer lists."""
    # i and j are pointers into each sorted list
    i = j = 0
    out: List[int] = []
    while i < len(a) and j < len(b):
        if a[i] == b[j]:
            out.append(a[i]); i += 1; j += 1
        elif a[i] < b[j]:
            i += 1
        else:
            j += 1
    return out


def union_sorted(a: List[int], b: List[int]) -> List[int]:
    """Two-pointer union for sorted integer lists (duplicates removed)."""
    i = j = 0
    out: List[int] = []
    while i < len(a) or j < len(b):
        if j >= len(b) or (i < len(a) and a[i] < b[j]):
            x = a[i]; i += 1
        elif i >= len(a) or b[j] < a[i]:
            x = b[j]; j += 1
        else:
            x = a[i]; i += 1; j += 1
        if not out or out[-1] != x:
            out.append(x)
    return out


def union_all(lists: Iterable[List[int]]) -> List[int]:
    out: List[int] = []
    for ids in lists:
        out = union_sorted(out, ids)
    return out
