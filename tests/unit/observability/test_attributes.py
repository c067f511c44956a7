"""Tests for shadowswap.observability.attributes module."""

from shadowswap.observability import attributes
from shadowswap.observability.attributes import (
    ATTR_BACKUP_COLLECTION,
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_MIGRATION_PHASE,
    ATTR_QUERY_NAME,
    ATTR_SUITE_NAME,
)


class TestAttributeConstants:
    """Tests for attribute constant definitions."""

    def test_component_attributes_have_shadowswap_prefix(self):
        """Migration attributes use the shadowswap namespace."""
        for name in (ATTR_MIGRATION_PHASE, ATTR_BACKUP_COLLECTION, ATTR_QUERY_NAME, ATTR_SUITE_NAME):
            assert name.startswith("shadowswap.")

    def test_database_attributes_follow_semantic_conventions(self):
        assert ATTR_DB_NAME == "db.name"
        assert ATTR_DB_OPERATION == "db.operation"

    def test_all_exports_are_unique_strings(self):
        values = [getattr(attributes, name) for name in attributes.__all__]
        assert all(isinstance(value, str) for value in values)
        assert len(values) == len(set(values))
