"""
Record Schema
=============

Typed shape of one training/inference example and the ordered field
bindings shared by ingestion, feature construction and persistence.

Two schemas are registered:
    - country: monthly country aggregates (default)
    - product: monthly product aggregates

Each schema is an explicit, ordered tuple of ``FieldSpec`` entries
(accessor + role). The numeric feature order is the order of the
``numeric`` entries and is fixed for the lifetime of a fitted pipeline.
"""

from dataclasses import dataclass, fields
from operator import attrgetter
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type

LABEL = "label"
CATEGORICAL = "categorical"
NUMERIC = "numeric"


@dataclass(frozen=True)
class RawRecord:
    """One month of aggregate statistics for one country."""

    unit_key: str
    year: float
    month: float
    units_sold: float
    avg: float
    count: float
    max: float
    min: float
    median: float
    std: float
    prev: float
    label_next: Optional[float] = None


@dataclass(frozen=True)
class ProductRecord:
    """One month of aggregate statistics for one product."""

    unit_key: str
    year: float
    month: float
    units_sold: float
    avg: float
    count: float
    max: float
    min: float
    prev: float
    label_next: Optional[float] = None


@dataclass(frozen=True)
class FieldSpec:
    """Binding of a record attribute to its role and source column."""

    name: str
    role: str
    column: str
    accessor: Callable[[Any], Any]


def _field(name: str, role: str, column: str) -> FieldSpec:
    return FieldSpec(name=name, role=role, column=column, accessor=attrgetter(name))


@dataclass(frozen=True)
class RecordSchema:
    """
    Ordered field bindings for one record type.

    Attributes:
        name: Registry name of the schema
        record_type: Dataclass built by ingestion for each row
        columns: Source file columns, in file order
        bindings: (accessor, role) entries; numeric entries in feature order
    """

    name: str
    record_type: Type
    columns: Tuple[str, ...]
    bindings: Tuple[FieldSpec, ...]

    @property
    def label(self) -> FieldSpec:
        return next(b for b in self.bindings if b.role == LABEL)

    @property
    def categorical(self) -> FieldSpec:
        return next(b for b in self.bindings if b.role == CATEGORICAL)

    @property
    def numeric(self) -> Tuple[FieldSpec, ...]:
        return tuple(b for b in self.bindings if b.role == NUMERIC)

    @property
    def numeric_fields(self) -> Tuple[str, ...]:
        return tuple(b.name for b in self.numeric)

    def field_for_column(self) -> Dict[str, str]:
        """Map each source column to the record attribute it fills."""
        mapping = {b.column: b.name for b in self.bindings}
        # Columns carried by the record but not used as features
        record_names = {f.name for f in fields(self.record_type)}
        for column in self.columns:
            if column not in mapping and column in record_names:
                mapping[column] = column
        return mapping


# Column order of Data/country.stats.csv
COUNTRY_SCHEMA = RecordSchema(
    name="country",
    record_type=RawRecord,
    columns=("next", "country", "year", "month", "sales", "avg",
             "count", "max", "min", "med", "std", "prev"),
    bindings=(
        _field("label_next", LABEL, "next"),
        _field("unit_key", CATEGORICAL, "country"),
        _field("year", NUMERIC, "year"),
        _field("month", NUMERIC, "month"),
        _field("max", NUMERIC, "max"),
        _field("min", NUMERIC, "min"),
        _field("std", NUMERIC, "std"),
        _field("count", NUMERIC, "count"),
        _field("units_sold", NUMERIC, "sales"),
        _field("median", NUMERIC, "med"),
        _field("prev", NUMERIC, "prev"),
    ),
)

# Column order of Data/product.stats.csv
PRODUCT_SCHEMA = RecordSchema(
    name="product",
    record_type=ProductRecord,
    columns=("next", "productId", "year", "month", "units", "avg",
             "count", "max", "min", "prev"),
    bindings=(
        _field("label_next", LABEL, "next"),
        _field("unit_key", CATEGORICAL, "productId"),
        _field("year", NUMERIC, "year"),
        _field("month", NUMERIC, "month"),
        _field("units_sold", NUMERIC, "units"),
        _field("avg", NUMERIC, "avg"),
        _field("count", NUMERIC, "count"),
        _field("max", NUMERIC, "max"),
        _field("min", NUMERIC, "min"),
        _field("prev", NUMERIC, "prev"),
    ),
)

SCHEMAS: Dict[str, RecordSchema] = {
    COUNTRY_SCHEMA.name: COUNTRY_SCHEMA,
    PRODUCT_SCHEMA.name: PRODUCT_SCHEMA,
}


def get_schema(name: str) -> RecordSchema:
    """Look up a registered schema by name."""
    try:
        return SCHEMAS[name]
    except KeyError:
        raise ValueError(
            f"Unknown schema: {name}. Choose from: {', '.join(sorted(SCHEMAS))}"
        ) from None


def record_from_mapping(values: Mapping[str, Any], schema: RecordSchema = COUNTRY_SCHEMA):
    """
    Build a typed record from a column -> value mapping.

    Keys may be either source column names (``sales``, ``med``) or record
    attribute names (``units_sold``, ``median``). Numeric values are coerced
    to float and the unit key to str.
    """
    column_to_field = schema.field_for_column()
    kwargs = {}
    for key, value in values.items():
        name = column_to_field.get(key, key)
        kwargs[name] = value

    categorical = schema.categorical.name
    for f in fields(schema.record_type):
        if f.name not in kwargs or kwargs[f.name] is None:
            continue
        if f.name == categorical:
            kwargs[f.name] = str(kwargs[f.name])
        else:
            kwargs[f.name] = float(kwargs[f.name])

    return schema.record_type(**kwargs)
