"""
Tests for the dedup extension function
"""
import pytest

from gvr_exporter.services.extensions import DEFAULT_EXTENSIONS, dedup


class TestDedup:
    """Tests for label token canonicalization"""

    def test_last_token_wins_and_sorted(self):
        assert dedup("a=1,b=2,a=3") == "a=3,b=2"

    def test_empty_input(self):
        assert dedup("") == ""

    def test_value_containing_equals_is_kept_intact(self):
        assert dedup("x=a=b,x=c") == "x=c"
        assert dedup("x=c,x=a=b") == "x=a=b"

    def test_token_without_equals_is_key_with_empty_value(self):
        assert dedup("flag,a=1,flag") == "a=1,flag"
        assert dedup("flag,flag=on") == "flag=on"

    def test_sorted_by_full_token_text(self):
        # by key "a" < "a-b", by full text "a-b=1" < "a=2" since '-' < '='
        assert dedup("b=1,a=2,a-b=1") == "a-b=1,a=2,b=1"

    @pytest.mark.parametrize("labels", [
        "a=1,b=2,a=3",
        "",
        "z=1,y=2,x=3,y=4",
        "x=a=b,x=c,w",
        "namespace=prod,name=api,namespace=prod",
    ])
    def test_idempotent(self, labels):
        once = dedup(labels)
        assert dedup(once) == once

    def test_output_keys_are_distinct(self):
        result = dedup("k=1,j=2,k=3,j=4,k=5")
        keys = [token.partition("=")[0] for token in result.split(",")]
        assert len(keys) == len(set(keys))
        assert result == "j=4,k=5"

    def test_repeated_calls_are_independent(self):
        assert dedup("a=1") == "a=1"
        assert dedup("b=2") == "b=2"

    def test_rejects_non_string(self):
        with pytest.raises(TypeError):
            dedup(42)

    def test_registered_by_name(self):
        assert DEFAULT_EXTENSIONS["dedup"] is dedup
