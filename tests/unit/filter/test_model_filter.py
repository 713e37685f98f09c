"""
Tests for the association (model) filter.
"""

import pytest
from pydantic import BaseModel

from pgfilter.filter import (
    EqualOperator,
    FilterConfigurationError,
    InvalidMappingTypeError,
    ModelFilter,
)
from pgfilter.query_builder import AssociationMapping, MappingType, Query


class Tag(BaseModel):
    id: int
    name: str


@pytest.fixture
def tags_filter(tags_mapping) -> ModelFilter:
    return ModelFilter(
        "tags",
        field_name="tags",
        mapping_type=MappingType.MANY_TO_MANY,
        association_mapping=tags_mapping,
    )


@pytest.fixture
def author_filter(author_mapping) -> ModelFilter:
    return ModelFilter(
        "author",
        field_name="author",
        mapping_type=MappingType.MANY_TO_ONE,
        association_mapping=author_mapping,
    )


class TestModelFilterEqual:
    """Test cases for the default (EQUAL) operator."""

    def test_in_list(self, query, tags_filter):
        """Test a plain IN over the joined identifier."""
        tags_filter.apply(query, {"value": [1, 2, 3]})

        sql, params = query.build()

        assert "LEFT JOIN post_tags" in sql
        assert "s_tags.id = ANY" in sql
        assert "$1" in sql
        assert "EXISTS" not in sql
        assert query.parameters == {"tags_0": [1, 2, 3]}
        assert params == [[1, 2, 3]]
        assert tags_filter.is_active()

    def test_explicit_equal_operator(self, query, author_filter):
        """Test that EQUAL behaves like the default."""
        author_filter.apply(query, {"type": EqualOperator.EQUAL, "value": [4]})

        sql, _ = query.build()

        assert "s_author.id = ANY" in sql
        assert "IS NULL" not in sql

    @pytest.mark.parametrize(
        "value, expected",
        [
            (7, [7]),
            ((1, 2), [1, 2]),
            ({3, }, [3]),
            ({"id": 5, "name": "python"}, [5]),
            (Tag(id=9, name="sql"), [9]),
            ([Tag(id=1, name="a"), {"id": 2}, 3], [1, 2, 3]),
        ],
    )
    def test_values_are_normalized_to_identifiers(self, query, tags_filter, value, expected):
        """Test scalar, collection and entity values."""
        tags_filter.apply(query, {"value": value})

        assert query.parameters == {"tags_0": expected}

    def test_custom_target_key(self, query):
        """Test entities reduced through a non default identifier column."""
        model_filter = ModelFilter(
            "category",
            mapping_type=MappingType.MANY_TO_ONE,
            association_mapping={
                "field_name": "category",
                "mapping_type": MappingType.MANY_TO_ONE,
                "target_table": "categories",
                "target_key": "code",
                "join_column": "category_code",
            },
        )

        model_filter.apply(query, {"value": {"code": "news"}})

        sql, _ = query.build()

        assert "s_category.code = ANY" in sql
        assert query.parameters == {"category_0": ["news"]}

    @pytest.mark.parametrize("value", [None, [], (), "", 0, {}])
    def test_empty_value_adds_no_predicate(self, query, tags_filter, value):
        """Test that empty selections do not filter."""
        tags_filter.apply(query, {"value": value})

        assert query.where_clause is None
        assert query.parameters == {}
        assert not tags_filter.is_active()

    def test_empty_value_still_joins(self, query, author_filter):
        """Test that the association is joined before the value is inspected."""
        author_filter.apply(query, {"value": []})

        assert [join.alias for join in query.get_joins_for("o")] == ["s_author"]

    def test_non_mapping_input_is_ignored(self, query, author_filter):
        """Test raw lists submitted without the value wrapper."""
        author_filter.apply(query, [1, 2])

        assert query.get_joins_for("o") == []
        assert query.where_clause is None


class TestModelFilterNotEqual:
    """NOT_EQUAL must also match rows without any associated entity."""

    def test_many_to_many(self, query, tags_filter):
        """Test NOT IN combined with an emptiness test on the link table."""
        tags_filter.apply(query, {"type": EqualOperator.NOT_EQUAL, "value": [1, 2, 3]})

        sql, params = query.build()

        assert "s_tags.id <> ALL" in sql
        assert " OR " in sql
        assert "NOT EXISTS" in sql
        assert "o_tags_empty.post_id = o.id" in sql
        assert params == [[1, 2, 3]]

    def test_many_to_one(self, query, author_filter):
        """Test NOT IN combined with a NULL foreign key."""
        author_filter.apply(query, {"type": EqualOperator.NOT_EQUAL, "value": [4]})

        sql, _ = query.build()

        assert "s_author.id <> ALL" in sql
        assert "o.author_id IS NULL" in sql
        assert "EXISTS" not in sql

    def test_numeric_string_operator(self, query, author_filter):
        """Test that the operator code may be submitted as a string."""
        author_filter.apply(query, {"type": "2", "value": [4]})

        sql, _ = query.build()

        assert "o.author_id IS NULL" in sql

    def test_one_to_many(self, query, comments_mapping):
        """Test the emptiness test for an inverse side collection."""
        ModelFilter(
            "comments",
            mapping_type=MappingType.ONE_TO_MANY,
            association_mapping=comments_mapping,
        ).apply(query, {"type": EqualOperator.NOT_EQUAL, "value": [10]})

        sql, _ = query.build()

        assert "s_comments.id <> ALL" in sql
        assert "NOT EXISTS" in sql
        assert "o_comments_empty.post_id = o.id" in sql

    def test_nested_association(self, query, author_mapping, company_mapping):
        """Test that the emptiness test targets the parent join, not the root."""
        company_filter = ModelFilter(
            "author.company",
            field_name="company",
            mapping_type=MappingType.MANY_TO_ONE,
            association_mapping=company_mapping,
            parent_association_mappings=[author_mapping],
        )

        company_filter.apply(query, {"type": EqualOperator.NOT_EQUAL, "value": [1]})

        sql, _ = query.build()

        assert "s_author_company.id <> ALL" in sql
        assert "s_author.company_id IS NULL" in sql
        assert "o.author_id IS NULL" not in sql
        assert query.parameters == {"author_company_0": [1]}

    def test_self_referencing_association(self):
        """Test that the emptiness sub-select stays correlated to the outer row."""
        query = Query().select_all().from_("category")
        children_filter = ModelFilter(
            "children",
            mapping_type=MappingType.ONE_TO_MANY,
            association_mapping=AssociationMapping(
                field_name="children",
                mapping_type=MappingType.ONE_TO_MANY,
                target_table="category",
                mapped_by="parent_id",
            ),
        )

        children_filter.apply(query, {"type": EqualOperator.NOT_EQUAL, "value": [3]})

        sql, _ = query.build()

        assert "category_children_empty.parent_id = category.id" in sql
        assert "category.parent_id = category.id" not in sql


class TestModelFilterConfiguration:
    """Test cases for misconfigured filters."""

    @pytest.mark.parametrize("mapping_type", [False, None, 3, True, "many_to_one"])
    def test_invalid_mapping_type(self, query, author_mapping, mapping_type):
        """Test that only association kinds are accepted."""
        model_filter = ModelFilter(
            "author", mapping_type=mapping_type, association_mapping=author_mapping
        )

        with pytest.raises(InvalidMappingTypeError, match="Invalid mapping type"):
            model_filter.apply(query, {"value": [1]})

        assert query.get_joins_for("o") == []

    def test_invalid_mapping_type_is_a_runtime_error(self, query, author_mapping):
        """Test the exception hierarchy."""
        model_filter = ModelFilter("author", association_mapping=author_mapping)

        with pytest.raises(RuntimeError):
            model_filter.apply(query, {"value": [1]})

    def test_raw_mapping_type_code(self, query, author_mapping):
        """Test a mapping type given as its integer code."""
        ModelFilter("author", mapping_type=2, association_mapping=author_mapping).apply(
            query, {"value": [1]}
        )

        assert query.where_clause is not None

    def test_missing_association_mapping(self, query):
        """Test a filter without relation metadata."""
        model_filter = ModelFilter("author", mapping_type=MappingType.MANY_TO_ONE)

        with pytest.raises(FilterConfigurationError):
            model_filter.apply(query, {"value": [1]})

    def test_mapping_type_must_match_association(self, query, comments_mapping):
        """Test an option that disagrees with the association metadata."""
        model_filter = ModelFilter(
            "comments",
            mapping_type=MappingType.MANY_TO_MANY,
            association_mapping=comments_mapping,
        )

        with pytest.raises(FilterConfigurationError, match="does not match"):
            model_filter.apply(query, {"type": EqualOperator.NOT_EQUAL, "value": [1]})

        assert query.get_joins_for("o") == []
        assert query.where_clause is None


class TestModelFilterJoins:
    """Test cases for alias resolution."""

    def test_parent_alias_of_direct_association(self, query, author_mapping):
        """Test the root alias as parent."""
        alias = query.entity_join([author_mapping])

        assert ModelFilter.get_parent_alias(query, alias) == "o"

    def test_parent_alias_of_nested_association(self, query, author_mapping, company_mapping):
        """Test the previous join as parent."""
        alias = query.entity_join([author_mapping, company_mapping])

        assert ModelFilter.get_parent_alias(query, alias) == "s_author"

    def test_parent_alias_of_unknown_alias(self, query):
        """Test the fallback to the root alias."""
        assert ModelFilter.get_parent_alias(query, "s_missing") == "o"

    def test_filters_share_joins(self, query, author_mapping, company_mapping, author_filter):
        """Test that filters on the same association reuse its join."""
        company_filter = ModelFilter(
            "author.company",
            mapping_type=MappingType.MANY_TO_ONE,
            association_mapping=company_mapping,
            parent_association_mappings=[author_mapping],
        )

        author_filter.apply(query, {"value": [1]})
        company_filter.apply(query, {"value": [2]})

        sql, params = query.build()

        assert [join.alias for join in query.get_joins_for("o")] == ["s_author", "s_author_company"]
        assert sql.count("LEFT JOIN users") == 1
        assert params == [[1], [2]]

    def test_parent_mappings_are_not_mutated(self, query, author_mapping, company_mapping):
        """Test that applying twice does not grow the configured parent chain."""
        parents = [author_mapping]
        company_filter = ModelFilter(
            "author.company",
            mapping_type=MappingType.MANY_TO_ONE,
            association_mapping=company_mapping,
            parent_association_mappings=parents,
        )

        company_filter.apply(query, {"value": [2]})
        company_filter.apply(query, {"value": [3]})

        assert parents == [author_mapping]
        assert len(query.get_joins_for("o")) == 2


class TestModelFilterRenderSettings:
    def test_render_settings(self):
        model_filter = ModelFilter("author", label="Author")

        assert model_filter.get_render_settings() == (
            "DefaultType",
            {
                "field_type": "EntityType",
                "field_options": {},
                "operator_type": "EqualOperatorType",
                "operator_options": {},
                "label": "Author",
            },
        )
