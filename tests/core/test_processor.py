"""
Tests for MetadataProcessor and its two representations.
"""

import random
from collections.abc import Set

import pytest

from fluentlog.core.handler import MetadataHandler
from fluentlog.core.metadata import ContextMetadata, Metadata, MutableMetadata
from fluentlog.core.metadata_key import MetadataKey
from fluentlog.core.processor import LightweightProcessor, MetadataProcessor, SimpleProcessor

TAG = MetadataKey.single("tag", str)
ID = MetadataKey.repeated("id", int)
NAME = MetadataKey.single("name", str)
ITEM = MetadataKey.repeated("item", str)


class RecordingHandler(MetadataHandler):
    """Records every callback as (label, value) or (label, [values])."""

    def handle(self, key, value, context):
        context.append((key.label, value))

    def handle_repeated(self, key, values, context):
        context.append((key.label, list(values)))


def scope_of(*entries):
    builder = ContextMetadata.builder()
    for key, value in entries:
        builder.add(key, value)
    return builder.build()


def logged_of(*entries):
    m = MutableMetadata()
    for key, value in entries:
        m.add_value(key, value)
    return m


def processed(processor):
    out = []
    processor.process(RecordingHandler(), out)
    return out


class TestProcessorSelection:
    """Test which representation is chosen."""

    def test_empty(self):
        """Test empty inputs give a processor which does nothing."""
        p = MetadataProcessor.for_scope_and_log_site(Metadata.empty(), Metadata.empty())
        assert p.key_count() == 0
        assert list(p.key_set()) == []
        assert processed(p) == []
        assert p.get_single_value(TAG) is None
        with pytest.raises(ValueError):
            p.get_single_value(ID)

    def test_small_uses_lightweight(self):
        """Test up to 28 entries use the compact form."""
        logged = logged_of(*[(ID, i) for i in range(28)])
        p = MetadataProcessor.for_scope_and_log_site(Metadata.empty(), logged)
        assert isinstance(p, LightweightProcessor)

    def test_large_uses_simple(self):
        """Test more than 28 entries use the map based form."""
        logged = logged_of(*[(ID, i) for i in range(29)])
        p = MetadataProcessor.for_scope_and_log_site(Metadata.empty(), logged)
        assert isinstance(p, SimpleProcessor)
        assert processed(p) == [("id", list(range(29)))]

    def test_lightweight_rejects_too_much_metadata(self):
        """Test the compact form cannot be built for large inputs."""
        logged = logged_of(*[(ID, i) for i in range(29)])
        with pytest.raises(ValueError):
            LightweightProcessor(Metadata.empty(), logged)


@pytest.mark.parametrize("factory", [LightweightProcessor, SimpleProcessor])
class TestMergeSemantics:
    """Test merge rules, for both representations."""

    def test_key_order(self, factory):
        """Test keys appear once, in first-seen order, scope first."""
        scope = scope_of((NAME, "n"), (ID, 1))
        logged = logged_of((TAG, "t"), (ID, 2), (NAME, "m"), (ITEM, "x"))
        p = factory(scope, logged)
        assert list(p.key_set()) == [NAME, ID, TAG, ITEM]
        assert p.key_count() == 4

    def test_single_key_override(self, factory):
        """Test log-site values replace scope values."""
        p = factory(scope_of((TAG, "t1")), logged_of((TAG, "t2")))
        assert p.get_single_value(TAG) == "t2"
        assert processed(p) == [("tag", "t2")]

    def test_single_key_repeated_in_scope(self, factory):
        """Test the last scope value wins without log-site values."""
        p = factory(scope_of((TAG, "a"), (NAME, "n"), (TAG, "b")), Metadata.empty())
        assert processed(p) == [("tag", "b"), ("name", "n")]

    def test_repeated_accumulation(self, factory):
        """Test repeated values are concatenated without de-duplication."""
        p = factory(scope_of((ID, 1), (ID, 2)), logged_of((ID, 1)))
        assert processed(p) == [("id", [1, 2, 1])]

    def test_get_single_value_rejects_repeated(self, factory):
        """Test repeated keys cannot be read as single values."""
        p = factory(scope_of((ID, 1)), Metadata.empty())
        with pytest.raises(ValueError):
            p.get_single_value(ID)

    def test_missing_key(self, factory):
        """Test absent keys are ignored."""
        p = factory(scope_of((TAG, "t")), Metadata.empty())
        assert p.get_single_value(NAME) is None
        out = []
        p.handle(ID, RecordingHandler(), out)
        assert out == []

    def test_handle_single_key(self, factory):
        """Test dispatching a single key."""
        p = factory(scope_of((TAG, "t"), (ID, 5)), logged_of((ID, 6)))
        out = []
        p.handle(ID, RecordingHandler(), out)
        assert out == [("id", [5, 6])]

    def test_values_iterator_is_single_pass(self, factory):
        """Test repeated values can only be iterated once."""
        p = factory(scope_of((ID, 1)), logged_of((ID, 2)))
        seen = []

        class TwiceHandler(MetadataHandler):
            def handle(self, key, value, context):
                pass

            def handle_repeated(self, key, values, context):
                seen.append(list(values))
                seen.append(list(values))

        p.process(TwiceHandler(), None)
        assert seen == [[1, 2], []]

    def test_key_set_is_read_only_set(self, factory):
        """Test the key set is an ordered, read-only set."""
        p = factory(scope_of((TAG, "t")), logged_of((ID, 1)))
        keys = p.key_set()
        assert isinstance(keys, Set)
        assert len(keys) == 2
        assert TAG in keys
        assert NAME not in keys
        assert not hasattr(keys, "add")

    def test_end_to_end_scenario(self, factory):
        """Test combined scope and log-site values."""
        p = factory(scope_of((TAG, "t1")), logged_of((TAG, "t2"), (ID, 7)))
        assert p.key_count() == 2
        assert p.get_single_value(TAG) == "t2"
        out = []
        p.handle(ID, RecordingHandler(), out)
        assert out == [("id", [7])]


class TestRepresentationEquivalence:
    """Test that both representations behave identically."""

    @staticmethod
    def observe(processor, keys):
        singles = {}
        for key in keys:
            if key.can_repeat:
                with pytest.raises(ValueError):
                    processor.get_single_value(key)
            else:
                singles[key.label] = processor.get_single_value(key)
        return processed(processor), processor.key_count(), list(processor.key_set()), singles

    @pytest.mark.parametrize("seed", range(25))
    def test_random_metadata(self, seed):
        """Test random metadata produces identical results."""
        rng = random.Random(seed)
        # Many keys so bloom filter false positives occur.
        keys = [MetadataKey.single(f"s{i}", int) for i in range(12)]
        keys += [MetadataKey.repeated(f"r{i}", int) for i in range(12)]
        total = rng.randint(1, 28)
        scope_size = rng.randint(0, total)
        entries = [(rng.choice(keys), rng.randint(0, 5)) for _ in range(total)]
        scope = scope_of(*entries[:scope_size])
        logged = logged_of(*entries[scope_size:])

        compact = self.observe(LightweightProcessor(scope, logged), keys)
        general = self.observe(SimpleProcessor(scope, logged), keys)
        assert compact == general

    def test_highest_index_repeated(self):
        """Test repeated values at the last compact position are kept."""
        filler = [(MetadataKey.single(f"f{i}", int), i) for i in range(26)]
        logged = logged_of((ID, 0), *filler, (ID, 27))
        assert logged.size() == 28
        compact = processed(LightweightProcessor(Metadata.empty(), logged))
        general = processed(SimpleProcessor(Metadata.empty(), logged))
        assert compact == general
        assert compact[0] == ("id", [0, 27])
