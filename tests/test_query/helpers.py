"""Fetch doubles shared by the query tests."""

import asyncio


class ScriptedFetch:
    """
    Fetch function that plays back a script of outcomes.

    Each call takes the next outcome; the last one repeats. Exceptions are
    raised, anything else is returned.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or [None]
        self.calls = 0

    async def __call__(self):
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)
