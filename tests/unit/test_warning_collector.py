"""Unit tests for the warning collector."""

import pytest

from tenant_dump_migrator.utils.warning_collector import WarningCollector


@pytest.mark.unit
class TestWarningCollector:
    def test_empty(self):
        warnings = WarningCollector()

        assert not warnings
        assert warnings.unique() == []

    def test_unique_keeps_first_seen_order(self):
        warnings = WarningCollector()
        warnings.warn("Skipping schema b")
        warnings.warn("Unknown ref posts.widget_id")
        warnings.warn("Skipping schema b")

        assert warnings.unique() == ["Skipping schema b", "Unknown ref posts.widget_id"]
        assert len(warnings) == 3
        assert warnings.count("Skipping schema b") == 2
        assert warnings.count("never") == 0
