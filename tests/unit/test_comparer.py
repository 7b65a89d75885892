"""
Unit tests for reconciliation comparer module.

Tests attribute filtering and attribute-level diffs between records.
"""

import pytest

from ldifcompare.ldif.model import DirectoryRecord, Modification, ModificationType


class TestAttributeFilter:
    """Test removal of ignored attributes."""

    @pytest.fixture
    def attribute_filter(self):
        """Create an AttributeFilter ignoring lastLogon and ds-* attributes."""
        from ldifcompare.reconciliation.comparer import AttributeFilter
        return AttributeFilter(exact_names=["lastLogon"], prefixes=["ds-"])

    @pytest.fixture
    def record(self):
        return DirectoryRecord("cn=a,dc=com", {
            "sn": "A",
            "LASTLOGON": "132",
            "ds-sync-hist": "x",
            "DS-Pwp-Last": "y",
            "description": "ds- is not a prefix here",
        })

    def test_exact_names_and_prefixes_are_removed(self, attribute_filter, record):
        """Test both filter kinds, case-insensitively."""
        filtered = attribute_filter.apply(record)

        assert filtered.attribute_names == ["sn", "description"]

    def test_filter_is_idempotent(self, attribute_filter, record):
        """Test filtering a filtered record changes nothing."""
        once = attribute_filter.apply(record)

        assert attribute_filter.apply(once) == once
        assert attribute_filter.apply(once) is once

    def test_empty_filter_returns_record(self, record):
        """Test a filter without rules is a no-op."""
        from ldifcompare.reconciliation.comparer import AttributeFilter
        attribute_filter = AttributeFilter()

        assert attribute_filter.is_empty
        assert attribute_filter.apply(record) is record

    def test_blank_entries_are_ignored(self):
        """Test blank names do not turn into match-everything prefixes."""
        from ldifcompare.reconciliation.comparer import AttributeFilter
        attribute_filter = AttributeFilter(exact_names=[" "], prefixes=["", "  "])

        assert attribute_filter.is_empty
        assert not attribute_filter.is_ignored("sn")


class TestRecordComparer:
    """Test attribute-level diffing."""

    @pytest.fixture
    def comparer(self):
        """Create a RecordComparer instance."""
        from ldifcompare.reconciliation.comparer import RecordComparer
        return RecordComparer()

    def test_identical_records_have_no_diff(self, comparer):
        """Test diff(r, r) is empty."""
        record = DirectoryRecord("cn=a", {"sn": "A", "objectClass": ["top", "person"]})

        assert comparer.diff(record, record) == []

    def test_value_order_does_not_matter(self, comparer):
        """Test multi-valued attributes compare as sets."""
        base = DirectoryRecord("cn=a", {"objectClass": ["top", "person"]})
        probe = DirectoryRecord("cn=a", {"objectClass": ["person", "top"]})

        assert comparer.diff(base, probe) == []

    def test_replace_in_both_directions(self, comparer):
        """Test a changed value yields inverse replaces."""
        left = DirectoryRecord("cn=x", {"a": "1"})
        right = DirectoryRecord("cn=x", {"a": "2"})

        assert comparer.diff(left, right) == [Modification("a", ModificationType.REPLACE, ["2"])]
        assert comparer.diff(right, left) == [Modification("a", ModificationType.REPLACE, ["1"])]

    def test_modification_order(self, comparer):
        """Test deletes and replaces in base order, then adds in probe order."""
        base = DirectoryRecord("cn=a", {"sn": "A", "mail": "a@x", "title": "Dr"})
        probe = DirectoryRecord("cn=a", {"pager": "1", "sn": "B", "title": "Dr", "mobile": "2"})

        assert comparer.diff(base, probe) == [
            Modification("sn", ModificationType.REPLACE, ["B"]),
            Modification("mail", ModificationType.DELETE),
            Modification("pager", ModificationType.ADD, ["1"]),
            Modification("mobile", ModificationType.ADD, ["2"]),
        ]

    def test_attribute_name_case_is_ignored(self, comparer):
        """Test attributes differing only in name case are the same attribute."""
        base = DirectoryRecord("cn=a", {"telephoneNumber": "1"})
        probe = DirectoryRecord("cn=a", {"TELEPHONENUMBER": "1"})

        assert comparer.diff(base, probe) == []

    def test_dn_is_not_compared(self, comparer):
        """Test records matched on an attribute may have different DNs."""
        base = DirectoryRecord("cn=a,ou=old", {"sn": "A"})
        probe = DirectoryRecord("cn=a,ou=new", {"sn": "A"})

        assert comparer.diff(base, probe) == []
