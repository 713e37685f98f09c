"""
Date and datetime filters, single value or range.

Two class flags select the behaviour:

- ``range``: the value is a ``{"start", "end"}`` pair instead of a scalar.
- ``time``: the column is compared at datetime precision. Without it the
  filter works on whole days: a single EQUAL date matches the entire day
  and a range end covers the entire final day.

The ``input_type`` option describes how the column stores the value.
``"timestamp"`` columns hold epoch seconds, so dates are converted before
binding.
"""
import os
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from pgfilter.logging_config import get_logger
from pgfilter.query_builder.builder import Query
from pgfilter.query_builder.expressions import ColumnExpression, col, or_
from pgfilter.filter.base import Filter
from pgfilter.filter.filter_models import (
    DateOperator,
    DateRangeOperator,
    FilterData,
    parse_date_range,
    parse_filter_data,
)

logger = get_logger(__name__)

CHOICES = {
    DateOperator.EQUAL: "=",
    DateOperator.GREATER_EQUAL: ">=",
    DateOperator.GREATER_THAN: ">",
    DateOperator.LESS_EQUAL: "<=",
    DateOperator.LESS_THAN: "<",
    DateOperator.NULL: "NULL",
    DateOperator.NOT_NULL: "NOT NULL",
}

# Added to a range end so "<= end" covers the whole final day
END_OF_DAY = timedelta(hours=23, minutes=59, seconds=59)


class AbstractDateFilter(Filter):
    range = False
    time = False

    def get_default_options(self) -> Dict[str, Any]:
        return {
            "input_type": "datetime",
            "timezone": os.getenv("PGFILTER_TIMEZONE", "UTC"),
        }

    def filter(self, query: Query, alias: str, field: Optional[str], value: Any) -> None:
        data = parse_filter_data(value)
        if data is None:
            logger.debug("Filter '%s' skipped: no value submitted", self.name)
            return

        column = col(field, alias)
        if self.range:
            self._filter_range(query, column, data)
        else:
            self._filter_single(query, column, data)

    def _filter_range(self, query: Query, column: ColumnExpression, data: FilterData) -> None:
        bounds = parse_date_range(data.value)
        if bounds is None:
            return

        start, end = bounds.start, bounds.end
        if not start and not end:
            return

        # The submitted end is midnight in the model timezone, which may not
        # be the timezone the form used; push it to the last second of that day.
        if not self.time and isinstance(end, date):
            end = self._end_of_day(end)

        if self._uses_timestamps():
            start = self._to_timestamp(start)
            end = self._to_timestamp(end)

        operator = DateRangeOperator.BETWEEN if data.type is None else data.type

        start_name = self.get_new_parameter_name(query)
        end_name = self.get_new_parameter_name(query)

        if operator == DateRangeOperator.NOT_BETWEEN:
            self.apply_where(
                query,
                or_(
                    column.lt(query.parameter(start_name)),
                    column.gt(query.parameter(end_name)),
                ),
            )
        else:
            if start:
                self.apply_where(query, column.ge(query.parameter(start_name)))
            if end:
                self.apply_where(query, column.le(query.parameter(end_name)))

        if start:
            query.set_parameter(start_name, start)
        if end:
            query.set_parameter(end_name, end)

    def _filter_single(self, query: Query, column: ColumnExpression, data: FilterData) -> None:
        if not data.value:
            return

        operator_type = DateOperator.EQUAL if data.type is None else data.type
        operator = self.get_operator(operator_type)

        value = data.value
        if self._uses_timestamps():
            value = self._to_timestamp(value)

        if operator in ("NULL", "NOT NULL"):
            self.apply_where(query, column.is_null() if operator == "NULL" else column.is_not_null())
            return

        if not self.time and operator_type == DateOperator.EQUAL:
            if self._uses_timestamps():
                end_value = self._add_day_to_timestamp(value)
            elif isinstance(value, date):
                end_value = value + timedelta(days=1)
            else:
                logger.debug("Filter '%s' skipped: %r is not a date", self.name, value)
                return

            parameter_name = self.get_new_parameter_name(query)
            end_parameter_name = self.get_new_parameter_name(query)
            self.apply_where(query, column.ge(query.parameter(parameter_name)))
            self.apply_where(query, column.lt(query.parameter(end_parameter_name)))
            query.set_parameter(parameter_name, value)
            query.set_parameter(end_parameter_name, end_value)
            return

        parameter_name = self.get_new_parameter_name(query)
        self.apply_where(query, column.op(operator, query.parameter(parameter_name)))
        query.set_parameter(parameter_name, value)

    @staticmethod
    def get_operator(operator_type: int) -> str:
        """Resolve a DateOperator code to its SQL operator, falling back to "="."""
        try:
            return CHOICES[DateOperator(int(operator_type))]
        except ValueError:
            return CHOICES[DateOperator.EQUAL]

    def _uses_timestamps(self) -> bool:
        return self.get_option("input_type") == "timestamp"

    def _timezone(self) -> tzinfo:
        return ZoneInfo(self.get_option("timezone") or "UTC")

    @staticmethod
    def _end_of_day(value: date) -> datetime:
        if not isinstance(value, datetime):
            value = datetime.combine(value, datetime.min.time())
        return value + END_OF_DAY

    def _to_timestamp(self, value: Any) -> int:
        """Epoch seconds for a date/datetime, 0 for anything else."""
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=self._timezone())
            return int(value.timestamp())
        if isinstance(value, date):
            return int(datetime.combine(value, datetime.min.time(), tzinfo=self._timezone()).timestamp())
        return 0

    def _add_day_to_timestamp(self, timestamp: int) -> int:
        # Calendar day in the configured timezone, 23h or 25h across DST changes
        moment = datetime.fromtimestamp(timestamp, self._timezone())
        return int((moment + timedelta(days=1)).timestamp())

    def get_render_settings(self) -> Tuple[str, Dict[str, Any]]:
        name = "DateType"

        if self.time and self.range:
            name = "DateTimeRangeType"
        elif self.time:
            name = "DateTimeType"
        elif self.range:
            name = "DateRangeType"

        return name, {
            "field_type": self.get_field_type(),
            "field_options": self.get_field_options(),
            "label": self.label,
        }


class DateFilter(AbstractDateFilter):
    """Filters a date column by a single day."""


class DateTimeFilter(AbstractDateFilter):
    """Filters a datetime column by a single moment."""

    time = True


class DateRangeFilter(AbstractDateFilter):
    """Filters a date column by a range of whole days."""

    range = True


class DateTimeRangeFilter(AbstractDateFilter):
    """Filters a datetime column by a range of moments."""

    range = True
    time = True
