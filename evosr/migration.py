# -*- coding: utf-8 -*-
"""migration.py - Copy good members from elsewhere into a population."""
import logging
from typing import Sequence

from .pop_member import PopMember
from .population import Population

logger = logging.getLogger(__name__)


def migrate(migrants: Sequence[PopMember], pop: Population, options, frac: float, rng) -> int:
    """Overwrite ``Poisson(len(pop) * frac)`` random slots of ``pop`` with migrant copies.

    The number replaced is capped at ``len(migrants)``. Copies get a fresh
    birth so they are not evicted first. Returns the number replaced.
    """
    if len(migrants) == 0 or pop.n == 0:
        return 0
    num_replace = min(int(rng.poisson(pop.n * frac)), len(migrants))
    if num_replace == 0:
        return 0
    locations = rng.randint(pop.n, size=num_replace)
    choices = rng.randint(len(migrants), size=num_replace)
    for loc, choice in zip(locations, choices):
        member = migrants[choice].copy()
        member.reset_birth(options.deterministic)
        pop.members[loc] = member
    logger.debug("Migrated %d member(s) into a population of %d", num_replace, pop.n)
    return num_replace
