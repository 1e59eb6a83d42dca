from __future__ import annotations

import random
import re
import time
from typing import Callable

from marketplace.domain.contracts import KIND_MATERIAL, KIND_VEHICLE


ORDER_NUMBER_PREFIXES = {
    KIND_MATERIAL: "MAT",
    KIND_VEHICLE: "VEH",
}

ORDER_NUMBER_PATTERN = re.compile(r"^(MAT|VEH)-\d{6}-\d{3}$")

_SYSTEM_RANDOM = random.SystemRandom()


def current_millis() -> int:
    return time.time_ns() // 1_000_000


def order_number_prefix(kind: str) -> str:
    prefix = ORDER_NUMBER_PREFIXES.get(kind)
    if not prefix:
        raise ValueError(f"unsupported request kind: {kind!r}")
    return prefix


def generate_order_number(
    kind: str,
    *,
    now_ms: int | None = None,
    rng: random.Random | None = None,
) -> str:
    """Build a ``MAT-123456-042`` style tracking label.

    The middle block is the low six digits of the millisecond timestamp and the
    tail is a random value in [0, 999]. It is a display label; uniqueness is
    enforced by the caller against storage.
    """
    millis = current_millis() if now_ms is None else int(now_ms)
    stamp = str(millis)[-6:].rjust(6, "0")
    suffix = (rng or _SYSTEM_RANDOM).randint(0, 999)
    return f"{order_number_prefix(kind)}-{stamp}-{suffix:03d}"


def allocate_order_number(
    kind: str,
    *,
    exists_fn: Callable[[str], bool],
    max_attempts: int = 5,
    now_fn: Callable[[], int] = current_millis,
    rng: random.Random | None = None,
) -> str | None:
    for _attempt in range(max(1, int(max_attempts))):
        candidate = generate_order_number(kind, now_ms=now_fn(), rng=rng)
        if not exists_fn(candidate):
            return candidate
    return None


def is_order_number(value: str | None) -> bool:
    return bool(ORDER_NUMBER_PATTERN.match(str(value or "")))
