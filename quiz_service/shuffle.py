import random
from typing import Sequence, TypeVar

T = TypeVar("T")


def seeded_shuffle(items: Sequence[T], seed: str) -> list[T]:
    """
    Deterministic Fisher-Yates shuffle.
    Same (items, seed) always gives the same order; the input is never mutated.
    """
    out = list(items)
    if len(out) < 2:
        return out
    # str seeds are hashed with sha512, so this does not depend on PYTHONHASHSEED
    rng = random.Random(seed)
    for i in range(len(out) - 1, 0, -1):
        j = rng.randint(0, i)
        out[i], out[j] = out[j], out[i]
    return out


def question_seed(participant_id: str) -> str:
    return participant_id


def option_seed(participant_id: str, question_id: str) -> str:
    return participant_id + question_id
