"""
Tests for the metrics registry

Coverage:
- Exposition format (HELP, TYPE, value lines)
- Empty payload before the first snapshot
- Latest snapshot wins (property-based)
- No torn reads under concurrent update/render
"""
import threading
import pytest
from pydantic import ValidationError
from hypothesis import HealthCheck, given, settings as hypothesis_settings, strategies as st
from prometheus_client.parser import text_string_to_metric_families

from satisfactory_exporter.metrics import MetricsRegistry
from satisfactory_exporter.models import ServerSnapshot
from tests.fakes import make_snapshot

METRIC_NAMES = {"num_connected_players", "tech_tier", "total_game_duration", "average_tick_rate"}


def parse_values(payload: bytes) -> dict:
    """Map metric name -> sample value"""
    values = {}
    for family in text_string_to_metric_families(payload.decode()):
        for sample in family.samples:
            values[sample.name] = sample.value
    return values


snapshot_strategy = st.builds(
    ServerSnapshot,
    num_connected_players=st.integers(min_value=0, max_value=10_000),
    tech_tier=st.integers(min_value=0, max_value=9),
    total_game_duration=st.integers(min_value=0, max_value=10**9),
    average_tick_rate=st.floats(min_value=0, max_value=1000, allow_nan=False, allow_infinity=False),
)


class TestRender:
    """Test exposition output"""

    def test_empty_before_first_snapshot(self):
        """No data yet: a well-formed payload with zero metric lines"""
        registry = MetricsRegistry()

        payload = registry.render()

        assert payload == b""
        assert list(text_string_to_metric_families(payload.decode())) == []
        assert registry.snapshot is None

    def test_example_snapshot(self, snapshot):
        registry = MetricsRegistry()
        registry.update(snapshot)

        text = registry.render().decode()

        assert "# HELP num_connected_players Number of connected players" in text
        assert "# TYPE num_connected_players gauge" in text
        assert "# HELP tech_tier Current tech tier" in text
        assert "# HELP total_game_duration Total game duration" in text
        assert "# HELP average_tick_rate Average tick rate" in text
        for name in METRIC_NAMES:
            assert f"# TYPE {name} gauge" in text
        assert parse_values(registry.render()) == {
            "num_connected_players": 3,
            "tech_tier": 5,
            "total_game_duration": 120,
            "average_tick_rate": 30,
        }

    def test_value_lines(self, snapshot):
        registry = MetricsRegistry()
        registry.update(snapshot)

        lines = registry.render().decode().splitlines()

        assert "num_connected_players 3.0" in lines
        assert "tech_tier 5.0" in lines
        assert "total_game_duration 120.0" in lines
        assert "average_tick_rate 30.0" in lines

    def test_only_server_metrics_exposed(self, snapshot):
        """Private registry: no process/platform collectors"""
        registry = MetricsRegistry()
        registry.update(snapshot)

        assert set(parse_values(registry.render())) == METRIC_NAMES

    def test_content_type(self):
        assert MetricsRegistry().content_type.startswith("text/plain")

    def test_registries_are_independent(self, snapshot):
        first = MetricsRegistry()
        second = MetricsRegistry()

        first.update(snapshot)

        assert second.render() == b""


class TestUpdate:
    """Test snapshot replacement"""

    def test_update_replaces_every_value(self):
        registry = MetricsRegistry()
        registry.update(make_snapshot(players=1, tier=1, duration=10, tick_rate=20.0))
        registry.update(make_snapshot(players=0, tier=2, duration=15, tick_rate=29.5))

        assert parse_values(registry.render()) == {
            "num_connected_players": 0,
            "tech_tier": 2,
            "total_game_duration": 15,
            "average_tick_rate": 29.5,
        }
        assert registry.snapshot.tech_tier == 2

    def test_snapshot_is_immutable(self, snapshot):
        with pytest.raises(ValidationError):
            snapshot.num_connected_players = 10

    @pytest.mark.property
    @hypothesis_settings(max_examples=50, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(snapshots=st.lists(snapshot_strategy, min_size=1, max_size=10))
    def test_render_reflects_latest_snapshot(self, snapshots):
        """Property: after the Nth update, render shows exactly the Nth snapshot"""
        registry = MetricsRegistry()

        for snapshot in snapshots:
            registry.update(snapshot)
            values = parse_values(registry.render())

            assert values["num_connected_players"] == snapshot.num_connected_players
            assert values["tech_tier"] == snapshot.tech_tier
            assert values["total_game_duration"] == snapshot.total_game_duration
            assert values["average_tick_rate"] == pytest.approx(snapshot.average_tick_rate)


class TestConcurrency:
    """Test atomicity of update vs render"""

    def test_no_torn_reads(self):
        """Every render shows all-ones or all-twos, never a mix"""
        registry = MetricsRegistry()
        ones = make_snapshot(players=1, tier=1, duration=1, tick_rate=1.0)
        twos = make_snapshot(players=2, tier=2, duration=2, tick_rate=2.0)
        registry.update(ones)

        stop = threading.Event()
        torn = []

        def writer():
            i = 0
            while not stop.is_set():
                registry.update(twos if i % 2 else ones)
                i += 1

        def reader():
            for _ in range(500):
                values = set(parse_values(registry.render()).values())
                if len(values) != 1:
                    torn.append(values)

        writer_thread = threading.Thread(target=writer)
        readers = [threading.Thread(target=reader) for _ in range(4)]
        writer_thread.start()
        for thread in readers:
            thread.start()
        for thread in readers:
            thread.join()
        stop.set()
        writer_thread.join()

        assert torn == []
