"""
Tests for log sites, specialized keys, scopes and LogSiteMap.
"""

import gc
import threading

from fluentlog.core.keys import LOG_SITE_GROUPING_KEY
from fluentlog.core.metadata import Metadata, MutableMetadata
from fluentlog.ratelimit.log_site import LoggingScope, LogSite, LogSiteMap, SpecializedLogSiteKey


def helper_site():
    return LogSite.for_caller()


def grouped_by(*values):
    m = MutableMetadata()
    for value in values:
        m.add_value(LOG_SITE_GROUPING_KEY, value)
    return m


class TestLogSite:
    """Test log site identity."""

    def test_equality_ignores_file(self):
        """Test the file name does not affect equality or hashing."""
        a = LogSite.injected("pkg.mod", "run", 10, "a.py")
        b = LogSite.injected("pkg.mod", "run", 10, "b.py")
        assert a == b
        assert hash(a) == hash(b)
        assert a != LogSite.injected("pkg.mod", "run", 11)

    def test_for_caller(self):
        """Test the caller's location is captured."""
        site = helper_site()
        assert site.module == __name__
        assert site.function == "test_for_caller"
        assert site.line > 0

    def test_stack_too_shallow(self):
        """Test an impossible depth gives the invalid site."""
        assert LogSite.for_caller(10_000) == LogSite.INVALID

    def test_str(self):
        """Test string form."""
        assert str(LogSite.injected("m", "f", 1)) == "LogSite{ module=m, function=f, line=1 }"


class TestSpecializedLogSiteKey:
    """Test key specialization."""

    def test_equality(self):
        """Test keys with equal parts are equal."""
        site = LogSite.injected("m", "f", 1)
        assert SpecializedLogSiteKey.of(site, "x") == SpecializedLogSiteKey.of(site, "x")
        assert SpecializedLogSiteKey.of(site, "x") != SpecializedLogSiteKey.of(site, "y")
        assert SpecializedLogSiteKey.of(site, "x") != site

    def test_order_matters_for_equality_not_hash(self):
        """Test qualifiers applied in a different order give different keys with equal hashes."""
        site = LogSite.injected("m", "f", 1)
        ab = SpecializedLogSiteKey.of(SpecializedLogSiteKey.of(site, "a"), "b")
        ba = SpecializedLogSiteKey.of(SpecializedLogSiteKey.of(site, "b"), "a")
        assert ab != ba
        assert hash(ab) == hash(ba)


class TestLoggingScope:
    """Test scope life-cycle."""

    def test_close_runs_hooks_once(self):
        """Test hooks run on the first close only."""
        calls = []
        scope = LoggingScope.create("request")
        scope.on_close(lambda: calls.append(1))
        assert not scope.closed
        scope.close()
        scope.close()
        assert calls == [1]
        assert scope.closed

    def test_hook_after_close_runs_immediately(self):
        """Test hooks added to a closed scope run at once."""
        calls = []
        scope = LoggingScope.create("request")
        scope.close()
        scope.on_close(lambda: calls.append(1))
        assert calls == [1]

    def test_garbage_collected_scope_runs_hooks(self):
        """Test dropping an unclosed scope still runs its hooks."""
        calls = []
        scope = LoggingScope.create("request")
        scope.on_close(lambda: calls.append(1))
        del scope
        gc.collect()
        assert calls == [1]

    def test_specialize(self):
        """Test keys specialized to the same scope are equal, and differ across scopes."""
        site = LogSite.injected("m", "f", 1)
        a, b = LoggingScope.create("a"), LoggingScope.create("a")
        assert a.specialize(site) == a.specialize(site)
        assert a.specialize(site) != b.specialize(site)
        assert str(a) == "a"


class TestLogSiteMap:
    """Test lazily populated per-log-site state."""

    def test_get_creates_once(self):
        """Test values are created on first access and reused."""
        created = []

        def factory():
            created.append(object())
            return created[-1]

        site_map = LogSiteMap(factory)
        site = LogSite.injected("m", "f", 1)
        first = site_map.get(site, Metadata.empty())
        assert site_map.get(site, Metadata.empty()) is first
        assert len(created) == 1
        assert site in site_map
        assert len(site_map) == 1

    def test_removed_when_scope_closes(self):
        """Test entries grouped by a scope are removed when it closes."""
        site_map = LogSiteMap(list)
        scope = LoggingScope.create("request")
        key = scope.specialize(LogSite.injected("m", "f", 1))
        site_map.get(key, grouped_by(scope))
        other = LogSite.injected("m", "f", 2)
        site_map.get(other, grouped_by("not a scope"))
        assert site_map.contains(key)
        scope.close()
        assert not site_map.contains(key)
        assert site_map.contains(other)

    def test_concurrent_get_returns_same_value(self):
        """Test racing threads all see the same value."""
        site_map = LogSiteMap(object)
        site = LogSite.injected("m", "f", 1)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(site_map.get(site, Metadata.empty()))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len({id(r) for r in results}) == 1
