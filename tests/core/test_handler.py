"""
Tests for MetadataHandler and its builder.
"""

import pytest

from fluentlog.core.handler import MetadataHandler
from fluentlog.core.metadata import Metadata, MutableMetadata
from fluentlog.core.metadata_key import MetadataKey
from fluentlog.core.processor import MetadataProcessor

FOO = MetadataKey.single("foo", str)
BAR = MetadataKey.repeated("bar", int)
BAZ = MetadataKey.repeated("baz", int)


def default_handler(key, value, out):
    out.append(f"{key.label}={value}")


def joined_repeated(key, values, out):
    out.append(f"{key.label}=[{','.join(str(v) for v in values)}]")


def run(handler, *entries):
    m = MutableMetadata()
    for key, value in entries:
        m.add_value(key, value)
    out = []
    MetadataProcessor.for_scope_and_log_site(Metadata.empty(), m).process(handler, out)
    return out


class TestDefaultBehaviour:
    """Test the handler base class."""

    def test_handle_not_implemented(self):
        """Test the base handle() must be overridden."""
        with pytest.raises(NotImplementedError):
            MetadataHandler().handle(FOO, "x", [])

    def test_repeated_defaults_to_handle(self):
        """Test handle_repeated() calls handle() once per value."""

        class Recorder(MetadataHandler):
            def handle(self, key, value, context):
                context.append(value)

        out = []
        Recorder().handle_repeated(BAR, iter([1, 2, 3]), out)
        assert out == [1, 2, 3]


class TestBuilder:
    """Test handlers built from callbacks."""

    def test_default_handler_only(self):
        """Test every value goes to the default handler."""
        handler = MetadataHandler.builder(default_handler).build()
        assert run(handler, (FOO, "a"), (BAR, 1), (BAR, 2)) == ["foo=a", "bar=1", "bar=2"]

    def test_default_repeated_handler(self):
        """Test repeated keys use the default repeated handler."""
        handler = MetadataHandler.builder(default_handler).set_default_repeated_handler(joined_repeated).build()
        assert run(handler, (FOO, "a"), (BAR, 1), (BAR, 2)) == ["foo=a", "bar=[1,2]"]

    def test_specific_handler_wins(self):
        """Test key specific handlers take precedence over defaults."""
        handler = (
            MetadataHandler.builder(default_handler)
            .add_handler(FOO, lambda k, v, out: out.append(f"FOO:{v}"))
            .add_repeated_handler(BAR, lambda k, vs, out: out.append(sum(vs)))
            .build()
        )
        assert run(handler, (FOO, "a"), (BAR, 1), (BAR, 2), (BAZ, 3)) == ["FOO:a", 3, "baz=3"]

    def test_single_handler_for_repeated_key(self):
        """Test a single value handler on a repeated key beats the default repeated handler."""
        handler = (
            MetadataHandler.builder(default_handler)
            .set_default_repeated_handler(joined_repeated)
            .add_handler(BAR, lambda k, v, out: out.append(v * 10))
            .build()
        )
        assert run(handler, (BAR, 1), (BAR, 2), (BAZ, 3)) == [10, 20, "baz=[3]"]

    def test_repeated_handler_requires_repeating_key(self):
        """Test repeated handlers are only allowed for repeatable keys."""
        with pytest.raises(ValueError):
            MetadataHandler.builder(default_handler).add_repeated_handler(FOO, joined_repeated)

    def test_handlers_replace_each_other(self):
        """Test adding one kind of handler removes the other kind."""
        handler = (
            MetadataHandler.builder(default_handler)
            .add_repeated_handler(BAR, joined_repeated)
            .add_handler(BAR, lambda k, v, out: out.append(-v))
            .build()
        )
        assert run(handler, (BAR, 1), (BAR, 2)) == [-1, -2]

    def test_ignoring(self):
        """Test ignored keys produce no output."""
        handler = MetadataHandler.builder(default_handler).ignoring(FOO, BAR).build()
        assert run(handler, (FOO, "a"), (BAR, 1), (BAZ, 2)) == ["baz=2"]

    def test_remove_handlers(self):
        """Test removed keys fall back to the defaults."""
        handler = MetadataHandler.builder(default_handler).ignoring(FOO, BAR).remove_handlers(BAR).build()
        assert run(handler, (FOO, "a"), (BAR, 1)) == ["bar=1"]

    def test_built_handler_is_independent(self):
        """Test later builder changes do not affect built handlers."""
        builder = MetadataHandler.builder(default_handler)
        first = builder.build()
        builder.ignoring(FOO)
        assert run(first, (FOO, "a")) == ["foo=a"]
        assert run(builder.build(), (FOO, "a")) == []
