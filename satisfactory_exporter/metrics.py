"""
Prometheus metrics for the Satisfactory dedicated server

Four gauges mirror the latest server snapshot. They are registered on the
first update, so before the first successful fetch the exposition payload
is empty rather than a set of misleading zeros.

A single lock covers both the snapshot write and payload generation, so a
scrape sees either the previous snapshot or the new one, never a mix.
"""
import threading
from typing import Optional
from prometheus_client import (
    Gauge,
    CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
)

from .models import ServerSnapshot

# ============================================================
# Server State Metrics
# ============================================================

NUM_CONNECTED_PLAYERS = ('num_connected_players', 'Number of connected players')
TECH_TIER = ('tech_tier', 'Current tech tier')
TOTAL_GAME_DURATION = ('total_game_duration', 'Total game duration')
AVERAGE_TICK_RATE = ('average_tick_rate', 'Average tick rate')


class MetricsRegistry:
    """Holds the latest ServerSnapshot and renders it in exposition format"""

    def __init__(self):
        # Custom registry (allows multiple instances for testing)
        self.registry = CollectorRegistry()
        self._lock = threading.Lock()
        self._snapshot: Optional[ServerSnapshot] = None

        self.num_connected_players = Gauge(*NUM_CONNECTED_PLAYERS, registry=None)
        self.tech_tier = Gauge(*TECH_TIER, registry=None)
        self.total_game_duration = Gauge(*TOTAL_GAME_DURATION, registry=None)
        self.average_tick_rate = Gauge(*AVERAGE_TICK_RATE, registry=None)

    @property
    def snapshot(self) -> Optional[ServerSnapshot]:
        """Latest accepted snapshot, or None before the first success"""
        return self._snapshot

    @property
    def content_type(self) -> str:
        """Prometheus content type"""
        return CONTENT_TYPE_LATEST

    def update(self, snapshot: ServerSnapshot):
        """Replace the stored snapshot with all four values at once"""
        with self._lock:
            if self._snapshot is None:
                for gauge in self._gauges():
                    self.registry.register(gauge)

            self.num_connected_players.set(snapshot.num_connected_players)
            self.tech_tier.set(snapshot.tech_tier)
            self.total_game_duration.set(snapshot.total_game_duration)
            self.average_tick_rate.set(snapshot.average_tick_rate)
            self._snapshot = snapshot

    def render(self) -> bytes:
        """
        Get metrics in Prometheus text format

        Gauge values are floats, so integer fields render as `3.0`. Scrapers
        parse that the same as `3`.
        """
        with self._lock:
            return generate_latest(self.registry)

    def _gauges(self):
        return (
            self.num_connected_players,
            self.tech_tier,
            self.total_game_duration,
            self.average_tick_rate,
        )
