import math
import typing as t
from collections.abc import Mapping

KT = t.TypeVar("KT")
VT = t.TypeVar("VT")
RecursiveMapping = VT | Mapping[KT, "RecursiveMapping[KT, VT]"]


def deep_update(
    d1: dict[KT, RecursiveMapping[KT, VT]], d2: Mapping[KT, RecursiveMapping[KT, VT]]
) -> dict[KT, RecursiveMapping[KT, VT]]:
    result = d1.copy()
    for k, v in d2.items():
        if isinstance(v, Mapping) and k in result and isinstance(result[k], Mapping):
            result[k] = deep_update(result[k], v)  # type: ignore
        else:
            result[k] = v
    return result


def round_half_up(x: float, ndigits: int = 0) -> float:
    """Round halves toward positive infinity: 62.5 -> 63, -2.5 -> -2.

    The builtin ``round`` rounds half to even, which would turn 62.5 into 62.
    """
    scale = 10**ndigits
    return math.floor(x * scale + 0.5) / scale
