"""
Tests for ScopedLoggingContext.
"""

import asyncio
import contextvars
import threading

import pytest

from fluentlog.context.level_map import LogLevelMap
from fluentlog.context.scoped import (
    ScopedLoggingContext,
    current_metadata,
    current_scope,
    current_state,
    current_tags,
    should_force_logging,
)
from fluentlog.core.level import Level
from fluentlog.core.metadata_key import MetadataKey
from fluentlog.core.tags import Tags
from fluentlog.ratelimit.log_site import LoggingScope

REQUEST = MetadataKey.single("request", str)
STEP = MetadataKey.repeated("step", str)


class TestInstall:
    """Test installing contexts."""

    def test_empty_outside_contexts(self):
        """Test there is no context state by default."""
        assert current_tags().is_empty()
        assert current_metadata().size() == 0
        assert current_scope() is None
        assert not should_force_logging("app", Level.SEVERE)

    def test_values_visible_inside(self):
        """Test context values are visible inside and restored after."""
        context = ScopedLoggingContext.new_context().with_tags(Tags.of("env", "prod")).with_metadata(REQUEST, "r1")
        with context.install() as state:
            assert state is current_state()
            assert current_tags() == Tags.of("env", "prod")
            assert current_metadata().find_value(REQUEST) == "r1"
        assert current_tags().is_empty()
        assert current_metadata().size() == 0

    def test_restored_after_error(self):
        """Test the enclosing context is restored when the body raises."""
        with pytest.raises(KeyError):
            with ScopedLoggingContext.new_context().with_metadata(REQUEST, "r1").install():
                raise KeyError("boom")
        assert current_metadata().size() == 0

    def test_nesting(self):
        """Test nested contexts merge tags and append metadata."""
        outer = ScopedLoggingContext.new_context().with_tags(Tags.of("env", "prod")).with_metadata(STEP, "a")
        inner = ScopedLoggingContext.new_context().with_tags(Tags.of("zone", "b")).with_metadata(STEP, "b")
        with outer.install():
            with inner.install():
                assert current_tags().as_map() == {"env": ("prod",), "zone": ("b",)}
                metadata = current_metadata()
                assert [metadata.get_value(i) for i in range(metadata.size())] == ["a", "b"]
            assert current_tags() == Tags.of("env", "prod")

    def test_inner_metadata_overrides(self):
        """Test inner single values win when looked up."""
        with ScopedLoggingContext.new_context().with_metadata(REQUEST, "outer").install():
            with ScopedLoggingContext.new_context().with_metadata(REQUEST, "inner").install():
                assert current_metadata().find_value(REQUEST) == "inner"

    def test_run_and_wrap(self):
        """Test running functions inside a context."""
        context = ScopedLoggingContext.new_context().with_metadata(REQUEST, "r9")

        def read(suffix):
            return current_metadata().find_value(REQUEST) + suffix

        assert context.run(read, "!") == "r9!"
        wrapped = context.wrap(read)
        assert wrapped.__name__ == "read"
        assert wrapped("?") == "r9?"
        assert current_metadata().size() == 0


class TestLogLevel:
    """Test forced log levels."""

    def test_force_level(self):
        """Test levels at or above the context level are forced."""
        with ScopedLoggingContext.new_context().with_log_level(Level.FINE).install():
            assert should_force_logging("app", Level.FINE)
            assert should_force_logging("app", Level.INFO)
            assert not should_force_logging("app", Level.FINER)

    def test_nested_levels_take_the_most_verbose(self):
        """Test an inner context cannot make forcing less verbose."""
        with ScopedLoggingContext.new_context().with_log_level(Level.FINEST).install():
            with ScopedLoggingContext.new_context().with_log_level(Level.WARNING).install():
                assert should_force_logging("app", Level.FINEST)

    def test_level_map_by_logger_name(self):
        """Test forcing follows the longest matching logger name prefix."""
        level_map = LogLevelMap.builder().add(Level.FINE, "app").add(Level.FINEST, "app.db").build()
        with ScopedLoggingContext.new_context().with_log_level_map(level_map).install():
            assert should_force_logging("app.db.pool", Level.FINEST)
            assert should_force_logging("app.web", Level.FINE)
            assert not should_force_logging("app.web", Level.FINER)
            assert not should_force_logging("other", Level.SEVERE)
            assert current_state().level_map == level_map

    def test_nested_level_maps_merge(self):
        """Test maps of nested contexts merge, keeping the most verbose level per logger."""
        outer = LogLevelMap.create({"app.db": Level.FINEST, "app.web": Level.INFO})
        inner = LogLevelMap.create({"app.web": Level.FINE, "jobs": Level.CONFIG})
        with ScopedLoggingContext.new_context().with_log_level_map(outer).install():
            with ScopedLoggingContext.new_context().with_log_level_map(inner).install():
                assert should_force_logging("app.db", Level.FINEST)
                assert should_force_logging("app.web", Level.FINE)
                assert should_force_logging("jobs.nightly", Level.CONFIG)
            assert not should_force_logging("app.web", Level.FINE)
            assert not should_force_logging("jobs", Level.SEVERE)


class TestScopes:
    """Test logging scopes attached to contexts."""

    def test_labelled_scope_closed_on_exit(self):
        """Test a scope created from a label is closed when the context exits."""
        context = ScopedLoggingContext.new_context().with_scope("request")
        with context.install():
            first = current_scope()
            assert first.label == "request"
            assert not first.closed
        assert first.closed
        with context.install():
            second = current_scope()
            assert second is not first
            assert not second.closed

    def test_given_scope_left_open(self):
        """Test an existing scope is not closed by the context."""
        scope = LoggingScope.create("job")
        with ScopedLoggingContext.new_context().with_scope(scope).install():
            assert current_scope() is scope
        assert not scope.closed

    def test_inner_context_inherits_scope(self):
        """Test contexts without a scope keep the enclosing one."""
        with ScopedLoggingContext.new_context().with_scope("outer").install():
            outer = current_scope()
            with ScopedLoggingContext.new_context().with_metadata(REQUEST, "x").install():
                assert current_scope() is outer


class TestPropagation:
    """Test context propagation across threads and tasks."""

    def test_new_threads_start_empty(self):
        """Test plain threads do not inherit the context."""
        seen = []
        with ScopedLoggingContext.new_context().with_metadata(REQUEST, "r1").install():
            thread = threading.Thread(target=lambda: seen.append(current_metadata().size()))
            thread.start()
            thread.join()
        assert seen == [0]

    def test_copied_context_in_thread(self):
        """Test threads running a copied context see its values."""
        seen = []
        with ScopedLoggingContext.new_context().with_metadata(REQUEST, "r1").install():
            ctx = contextvars.copy_context()
        thread = threading.Thread(target=ctx.run, args=(lambda: seen.append(current_metadata().find_value(REQUEST)),))
        thread.start()
        thread.join()
        assert seen == ["r1"]

    @pytest.mark.asyncio
    async def test_tasks_are_isolated(self):
        """Test concurrent tasks each see their own context."""

        async def handle(request_id):
            with ScopedLoggingContext.new_context().with_metadata(REQUEST, request_id).install():
                await asyncio.sleep(0.01)
                return current_metadata().find_value(REQUEST)

        results = await asyncio.gather(*(handle(f"r{i}") for i in range(5)))
        assert results == [f"r{i}" for i in range(5)]
        assert current_metadata().size() == 0

    @pytest.mark.asyncio
    async def test_tasks_inherit_context(self):
        """Test tasks created inside a context inherit it."""

        async def read():
            return current_tags()

        with ScopedLoggingContext.new_context().with_tags(Tags.of("env", "test")).install():
            task = asyncio.create_task(read())
        assert await task == Tags.of("env", "test")
