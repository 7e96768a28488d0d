import pytest

from src.exceptions import InvalidArgument
from src.search import SuggestionEngine


class ExplodingStore:
    def suggest_by_prefix(self, prefix, limit):
        raise AssertionError("store should not be queried")


class RecordingStore:
    def __init__(self):
        self.calls = []

    def suggest_by_prefix(self, prefix, limit):
        self.calls.append((prefix, limit))
        return []


@pytest.mark.parametrize("prefix", [None, "", "a", " a  "])
def test_short_prefix_never_touches_the_store(prefix):
    assert SuggestionEngine(ExplodingStore()).suggest(prefix) == []


def test_prefix_is_trimmed_and_default_limit_applied():
    store = RecordingStore()
    SuggestionEngine(store, default_limit=7).suggest("  am ")
    assert store.calls == [("am", 7)]


def test_case_insensitive_sorted_and_capped(kumasi_store):
    engine = SuggestionEngine(kumasi_store)
    assert engine.suggest("AMO") == ["Amoxicillin", "Amoxicillin Clavulanate"]
    assert engine.suggest("am", limit=1) == ["Amlodipine"]


def test_synonyms_are_not_suggested(kumasi_store):
    engine = SuggestionEngine(kumasi_store)
    assert engine.suggest("augm") == []
    assert engine.suggest("pa") == ["Paracetamol"]


def test_bad_limit():
    with pytest.raises(InvalidArgument):
        SuggestionEngine(RecordingStore()).suggest("am", limit=0)
