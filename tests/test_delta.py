"""Tests for the delta engine."""

from conftest import make_item

from resultwatch.reconciler import diff, is_same_item


class TestDiff:
    def test_new_item_detected(self):
        previous = [make_item("Result A ready for pickup at the main branch")]
        current = [
            make_item("Result A ready for pickup at the main branch", "keyword_0"),
            make_item("Result B ready for pickup at the main branch", "keyword_1"),
        ]

        new = diff(previous, current)

        assert [i.text for i in new] == ["Result B ready for pickup at the main branch"]

    def test_cold_start_reports_nothing(self):
        current = [make_item("Result A ready"), make_item("Result B ready")]

        assert diff(None, current) == []

    def test_empty_previous_reports_everything(self):
        current = [make_item("Result A ready"), make_item("Result B ready")]

        assert diff([], current) == current

    def test_unchanged_state_reports_nothing(self):
        items = [make_item("Result A ready"), make_item("Result B ready")]

        assert diff(items, items) == []

    def test_local_id_is_ignored(self):
        previous = [make_item("Result A ready", local_id="keyword_3")]
        current = [make_item("Result A ready", local_id="keyword_9")]

        assert diff(previous, current) == []

    def test_same_first_50_characters_counts_as_seen(self):
        prefix = "P" * 50
        previous = [make_item(prefix + " first version")]
        current = [make_item(prefix + " second version")]

        assert diff(previous, current) == []

    def test_difference_inside_first_50_characters_is_new(self):
        previous = [make_item("A" * 49 + "x" + " tail")]
        current = [make_item("A" * 49 + "y" + " tail")]

        assert len(diff(previous, current)) == 1

    def test_current_order_preserved(self):
        current = [make_item("third item text"), make_item("first item text")]

        assert diff([make_item("unrelated text")], current) == current


class TestIsSameItem:
    def test_identical_text(self):
        assert is_same_item(make_item("same"), make_item("same"))

    def test_empty_text_only_matches_empty(self):
        assert is_same_item(make_item(""), make_item(""))
        assert not is_same_item(make_item(""), make_item("something"))
