from collections.abc import MutableSequence, Sequence
from typing import TypeVar

T = TypeVar("T")


def _swap(values: MutableSequence[T], i: int, j: int) -> None:
    values[i], values[j] = values[j], values[i]


def quick_select_median(values: MutableSequence[T]) -> T:
    """Return the lower median of `values` without a full sort.

    Hoare-style quickselect with a median-of-three pivot taken from the first,
    middle and last element of the active window. Only the partition holding
    the median rank is narrowed into, which keeps the expected cost linear.

    The sequence is reordered in place; use `median_of` to keep the caller's
    order intact.

    Args:
        values: Mutable sequence of mutually comparable elements.
    Returns:
        The element at index `(len(values) - 1) // 2` of the sorted order.
    """
    if not values:
        raise ValueError("Cannot select the median of an empty sequence.")
    low = 0
    high = len(values) - 1
    median = (low + high) // 2
    while True:
        if high <= low:
            return values[median]
        if high == low + 1:
            if values[low] > values[high]:
                _swap(values, low, high)
            return values[median]

        middle = (low + high) // 2
        if values[middle] > values[high]:
            _swap(values, middle, high)
        if values[low] > values[high]:
            _swap(values, low, high)
        if values[middle] > values[low]:
            _swap(values, middle, low)
        # Pivot now sits at `low`; the smallest of the three guards the left scan.
        _swap(values, middle, low + 1)

        ll = low + 1
        hh = high
        while True:
            ll += 1
            while values[low] > values[ll]:
                ll += 1
            hh -= 1
            while values[hh] > values[low]:
                hh -= 1
            if hh < ll:
                break
            _swap(values, ll, hh)
        _swap(values, low, hh)

        if hh <= median:
            low = ll
        if hh >= median:
            high = hh - 1


def median_of(values: Sequence[T]) -> T:
    """Lower median of `values`, leaving the input untouched."""
    return quick_select_median(list(values))
