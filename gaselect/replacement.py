from __future__ import annotations

import math

from gaselect.errors import InvalidArgument
from gaselect.population import Generation


def generation_gap(old_generation: Generation, new_generation: Generation, G: float) -> Generation:
    """
    Replace the worst ceil(G * P) old individuals by the best new ones.

    P is the size of old_generation and the result always has P distinct
    individuals: children already among the kept old individuals are skipped,
    and when too few new ones remain the next-best old individuals fill the
    remainder.
    """
    if not 0.0 <= float(G) <= 1.0:
        raise InvalidArgument(f"Generation gap G must lie in [0, 1], got {G}")
    P = len(old_generation)
    # rounding first keeps e.g. 0.3 * 10 from ceiling to 4
    k = min(int(math.ceil(round(float(G) * P, 9))), P)
    survivors = list(old_generation[: P - k])
    taken = {ind.chromosome for ind in survivors}

    offspring = []
    for ind in new_generation:
        if len(offspring) == k:
            break
        if ind.chromosome not in taken:
            offspring.append(ind)
            taken.add(ind.chromosome)

    filler = []
    for ind in old_generation[P - k :]:
        if len(survivors) + len(offspring) + len(filler) == P:
            break
        if ind.chromosome not in taken:
            filler.append(ind)
            taken.add(ind.chromosome)
    return Generation(survivors + offspring + filler)
