"""
Test doubles for the upstream client
"""
import asyncio

from satisfactory_exporter.models import ServerSnapshot


def make_snapshot(players=3, tier=5, duration=120, tick_rate=30.0) -> ServerSnapshot:
    return ServerSnapshot(
        num_connected_players=players,
        tech_tier=tier,
        total_game_duration=duration,
        average_tick_rate=tick_rate
    )


class FakeServerClient:
    """
    Stand-in for ServerApiClient

    Each fetch pops the next scripted result: a ServerSnapshot is returned,
    an exception is raised. The last result repeats once the script runs out.
    """

    def __init__(self, results=None, delay: float = 0.0):
        self.results = list(results or [make_snapshot()])
        self.delay = delay
        self.fetch_started = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.connected = False
        self.gate = None

    async def connect(self):
        self.connected = True

    async def disconnect(self):
        self.connected = False

    async def fetch(self):
        self.fetch_started.append(asyncio.get_running_loop().time())
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        finally:
            self.in_flight -= 1

        if isinstance(result, BaseException):
            raise result
        return result
