"""
Base class shared by the listing filters.

A filter is configured once with a name and options, then applied to a
``Query`` with the raw value submitted by the listing form. Applying a
filter only ever adds predicates, joins and bound parameters to the query.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pgfilter.logging_config import get_logger
from pgfilter.query_builder.builder import Query
from pgfilter.query_builder.expressions import Expression
from pgfilter.query_builder.types import AssociationMapping
from pgfilter.filter.filter_models import FilterCondition

logger = get_logger(__name__)


class FilterConfigurationError(RuntimeError):
    """A filter was configured with options it cannot work with."""


class InvalidMappingTypeError(FilterConfigurationError):
    """The ``mapping_type`` option is not an association kind."""


class Filter(ABC):
    """
    Base class for listing filters.

    Subclasses implement ``filter()`` and ``get_render_settings()``, and may
    override ``association()`` to change which alias the predicate targets.
    """

    def __init__(self, name: str, condition: FilterCondition = FilterCondition.AND, **options: Any):
        self.name = name
        self.condition = FilterCondition(condition)
        self.options: Dict[str, Any] = {**self.get_default_options(), **options}
        self.value: Any = None
        self.active = False

    def get_default_options(self) -> Dict[str, Any]:
        return {}

    def get_option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    def set_option(self, name: str, value: Any) -> None:
        self.options[name] = value

    @property
    def field_name(self) -> str:
        field_name = self.get_option("field_name")
        if not field_name:
            raise FilterConfigurationError(
                f"The option `field_name` must be set for field: `{self.name}`"
            )
        return field_name

    @property
    def label(self) -> str:
        return self.get_option("label") or self.name

    @property
    def association_mapping(self) -> Optional[AssociationMapping]:
        return self._mapping(self.get_option("association_mapping"))

    @property
    def parent_association_mappings(self) -> List[AssociationMapping]:
        return [self._mapping(m) for m in self.get_option("parent_association_mappings") or []]

    @staticmethod
    def _mapping(mapping: Any) -> Optional[AssociationMapping]:
        if mapping is None or isinstance(mapping, AssociationMapping):
            return mapping
        return AssociationMapping.model_validate(mapping)

    def get_field_type(self) -> str:
        return self.get_option("field_type", "TextType")

    def get_field_options(self) -> Dict[str, Any]:
        return self.get_option("field_options", {"required": False})

    @abstractmethod
    def get_render_settings(self) -> Tuple[str, Dict[str, Any]]:
        """Form type name and its options."""

    def apply(self, query: Query, filter_data: Any) -> None:
        """
        Apply the submitted value to the query.

        Values that are not a mapping with a ``value`` key are ignored.
        """
        self.value = filter_data
        if isinstance(filter_data, Mapping) and "value" in filter_data:
            alias, field = self.association(query, filter_data)
            self.filter(query, alias, field, filter_data)

    def association(self, query: Query, value: Any) -> Tuple[str, Optional[str]]:
        """Join the parent associations and return ``(alias, field)``."""
        alias = query.entity_join(self.parent_association_mappings)
        return alias, self.field_name

    @abstractmethod
    def filter(self, query: Query, alias: str, field: Optional[str], value: Any) -> None:
        """Add the predicate for ``value`` on ``alias.field``."""

    def get_new_parameter_name(self, query: Query) -> str:
        return query.new_parameter_name(self.name.replace(".", "_"))

    def apply_where(self, query: Query, condition: Expression) -> None:
        """Add a predicate to the query and mark the filter active."""
        if self.condition == FilterCondition.OR:
            query.or_where(condition)
        else:
            query.and_where(condition)

        self.active = True
        logger.debug("Filter '%s' applied (%s)", self.name, self.condition.value)

    def is_active(self) -> bool:
        return self.active
