"""
Shared fixtures for the pgfilter test suite.

The listing under test is ``posts`` aliased ``o``, with an author
(many-to-one), tags (many-to-many through ``post_tags``) and comments
(one-to-many); authors belong to a company.
"""

import pytest

from pgfilter.query_builder import AssociationMapping, MappingType, Query


@pytest.fixture
def query() -> Query:
    """A listing query with a root alias and no predicates yet."""
    return Query().select_all().from_("posts", alias="o")


@pytest.fixture
def author_mapping() -> AssociationMapping:
    return AssociationMapping(
        field_name="author",
        mapping_type=MappingType.MANY_TO_ONE,
        target_table="users",
        join_column="author_id",
    )


@pytest.fixture
def company_mapping() -> AssociationMapping:
    return AssociationMapping(
        field_name="company",
        mapping_type=MappingType.MANY_TO_ONE,
        target_table="companies",
        join_column="company_id",
    )


@pytest.fixture
def tags_mapping() -> AssociationMapping:
    return AssociationMapping(
        field_name="tags",
        mapping_type=MappingType.MANY_TO_MANY,
        target_table="tags",
        join_table="post_tags",
        join_table_source_column="post_id",
        join_table_target_column="tag_id",
    )


@pytest.fixture
def comments_mapping() -> AssociationMapping:
    return AssociationMapping(
        field_name="comments",
        mapping_type=MappingType.ONE_TO_MANY,
        target_table="comments",
        mapped_by="post_id",
    )
