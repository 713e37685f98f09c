"""
Filter on a related entity (association), matching by identifier.
"""
from collections.abc import Collection, Mapping
from typing import Any, Dict, List, Optional, Tuple

from pgfilter.logging_config import get_logger
from pgfilter.query_builder.builder import Query, select
from pgfilter.query_builder.expressions import Expression, col, exists, literal, not_, or_
from pgfilter.query_builder.types import AssociationMapping, MappingType
from pgfilter.filter.base import Filter, FilterConfigurationError, InvalidMappingTypeError
from pgfilter.filter.filter_models import EqualOperator, FilterData, parse_filter_data

logger = get_logger(__name__)

ASSOCIATION_TYPES = (
    MappingType.ONE_TO_ONE,
    MappingType.ONE_TO_MANY,
    MappingType.MANY_TO_MANY,
    MappingType.MANY_TO_ONE,
)


class ModelFilter(Filter):
    """
    Matches rows whose association points at one of the selected entities.

    With the NOT_EQUAL operator, rows without any associated entity match
    too: a plain NOT IN would drop them, since the joined identifier is NULL.
    """

    def get_default_options(self) -> Dict[str, Any]:
        return {
            "mapping_type": False,
            "field_name": False,
            "field_type": "EntityType",
            "field_options": {},
            "operator_type": "EqualOperatorType",
            "operator_options": {},
        }

    def filter(self, query: Query, alias: str, field: Optional[str], value: Any) -> None:
        data = parse_filter_data(value)
        if data is None or not data.value:
            logger.debug("Filter '%s' skipped: no value submitted", self.name)
            return

        self.handle_multiple(query, alias, data.model_copy(update={"value": self._normalize(data.value)}))

    def _normalize(self, value: Any) -> List[Any]:
        if isinstance(value, Collection) and not isinstance(value, (str, bytes, Mapping)):
            values = list(value)
        else:
            values = [value]
        return [self._identifier(item) for item in values]

    def _identifier(self, item: Any) -> Any:
        """Reduce an entity-like item to the identifier the join compares."""
        mapping = self.association_mapping
        key = mapping.target_key if mapping else "id"
        if isinstance(item, Mapping):
            return item.get(key, item)
        return getattr(item, key, item)

    def handle_multiple(self, query: Query, alias: str, value: FilterData) -> None:
        """
        Add the IN / NOT IN predicate for the selected identifiers.

        ``alias`` is the joined association returned by ``association()``,
        so the configured field name is not used for the comparison itself.
        """
        values = value.value
        if len(values) == 0:
            return

        parameter_name = self.get_new_parameter_name(query)
        identifier = col(self._target_key(), alias)

        if value.type == EqualOperator.NOT_EQUAL:
            parent_alias = self.get_parent_alias(query, alias)
            self.apply_where(
                query,
                or_(
                    identifier.not_in(query.parameter(parameter_name)),
                    self._association_is_empty(parent_alias),
                ),
            )
        else:
            self.apply_where(query, identifier.in_(query.parameter(parameter_name)))

        query.set_parameter(parameter_name, values)

    def _target_key(self) -> str:
        mapping = self.association_mapping
        return mapping.target_key if mapping else "id"

    def _association_is_empty(self, parent_alias: str) -> Expression:
        """
        ``parent.field IS EMPTY`` for collections, ``IDENTITY(parent.field) IS NULL``
        for a foreign key held by the parent.
        """
        mapping = self.association_mapping
        if mapping is None:
            return col(self.field_name, parent_alias).is_null()

        if mapping.join_column and mapping.mapping_type != MappingType.MANY_TO_MANY:
            return col(mapping.join_column, parent_alias).is_null()

        # Aliased so the correlation still reaches the parent row when the
        # association points back at the parent's own table
        empty_alias = f"{parent_alias}_{mapping.field_name}_empty"
        if mapping.mapping_type == MappingType.MANY_TO_MANY:
            table, schema, column = mapping.join_table, mapping.join_table_schema, mapping.join_table_source_column
        else:
            table, schema, column = mapping.target_table, mapping.target_schema, mapping.mapped_by

        return not_(exists(
            select(literal(1))
            .from_(table, schema=schema, alias=empty_alias)
            .where(col(column, empty_alias).eq(col(mapping.source_key, parent_alias)))
        ))

    def association(self, query: Query, value: Any) -> Tuple[str, Optional[str]]:
        mapping_type = self.get_option("mapping_type")
        if isinstance(mapping_type, bool) or mapping_type not in ASSOCIATION_TYPES:
            logger.error("Filter '%s' has invalid mapping type %r", self.name, mapping_type)
            raise InvalidMappingTypeError("Invalid mapping type")

        association_mapping = self.association_mapping
        if association_mapping is None:
            raise FilterConfigurationError(
                f"The option `association_mapping` must be set for field: `{self.name}`"
            )
        if association_mapping.mapping_type != mapping_type:
            raise FilterConfigurationError(
                f"The option `mapping_type` ({MappingType(mapping_type).name}) does not match "
                f"the association mapping ({association_mapping.mapping_type.name}) for field: `{self.name}`"
            )

        association_mappings: List[AssociationMapping] = self.parent_association_mappings
        association_mappings.append(association_mapping)
        alias = query.entity_join(association_mappings)

        return alias, None

    @staticmethod
    def get_parent_alias(query: Query, alias: str) -> str:
        """
        Alias owning the association joined as ``alias``.

        The root alias for a direct association, the joined entity's alias
        for nested associations.
        """
        parent_alias = root_alias = query.get_root_aliases()[0]
        for join in query.get_joins_for(root_alias):
            if join.alias == alias:
                parent_alias = join.join.split(".")[0]
                break

        return parent_alias

    def get_render_settings(self) -> Tuple[str, Dict[str, Any]]:
        return "DefaultType", {
            "field_type": self.get_field_type(),
            "field_options": self.get_field_options(),
            "operator_type": self.get_option("operator_type"),
            "operator_options": self.get_option("operator_options"),
            "label": self.label,
        }
