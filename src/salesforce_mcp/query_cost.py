"""Complexity scoring, selectivity and cost estimation for SOQL queries.

Estimates are heuristics. Row counts come from a fixed table per well-known
object rather than org statistics, and an index is assumed for ``Id``,
reference and unique fields and a handful of standard fields.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from .query_components import QueryComponents, count_joins, count_subqueries
from .salesforce import describe_sobject

logger = logging.getLogger(__name__)

DEFAULT_RECORD_COUNT = 10000
RECORD_COUNT_ESTIMATES = {
    "Account": 50000,
    "Contact": 100000,
    "Lead": 75000,
    "Opportunity": 25000,
}
COMMON_INDEXED_FIELDS = ("Name", "Email", "CreatedDate", "LastModifiedDate", "OwnerId")
MIN_SELECTIVITY = 0.001

LARGE_DAY_RANGE = re.compile(r"LAST_N_DAYS:\s*([3-9]\d{2,}|\d{4,})", re.IGNORECASE)
LARGE_MONTH_RANGE = re.compile(r"LAST_N_MONTHS:\s*([2-9]\d+|\d{3,})", re.IGNORECASE)
DATE_FIELD = re.compile(r"date", re.IGNORECASE)


@dataclass
class ObjectMetadata:
    name: str
    record_count: int = DEFAULT_RECORD_COUNT
    indexed_fields: List[str] = field(default_factory=lambda: ["Id"])
    custom_fields: List[str] = field(default_factory=list)


def js_round(value: float) -> int:
    """Round half up, the way the complexity score has always been rounded."""
    return int(math.floor(value + 0.5))


def estimate_record_count(describe: Mapping[str, Any]) -> int:
    return RECORD_COUNT_ESTIMATES.get(describe.get("name"), DEFAULT_RECORD_COUNT)


def identify_indexed_fields(describe: Mapping[str, Any]) -> List[str]:
    indexed = ["Id"]
    for field_info in describe.get("fields") or []:
        name = field_info.get("name")
        if not name or name in indexed:
            continue
        if (field_info.get("type") == "reference" or field_info.get("unique")
                or name in COMMON_INDEXED_FIELDS):
            indexed.append(name)
    return indexed


def build_object_metadata(describe: Mapping[str, Any], object_name: str) -> ObjectMetadata:
    return ObjectMetadata(
        name=describe.get("name") or object_name,
        record_count=estimate_record_count(describe),
        indexed_fields=identify_indexed_fields(describe),
        custom_fields=[f.get("name") for f in describe.get("fields") or [] if f.get("custom")],
    )


def fetch_object_metadata(sf, object_names: Iterable[str]) -> Dict[str, ObjectMetadata]:
    """Describe each object once; objects that cannot be described get defaults."""
    metadata: Dict[str, ObjectMetadata] = {}
    for object_name in object_names:
        if object_name in metadata:
            continue
        try:
            describe = describe_sobject(sf, object_name)
            metadata[object_name] = build_object_metadata(describe, object_name)
        except Exception as e:
            logger.warning(f"Could not describe {object_name}, using default metadata: {str(e)}")
            metadata[object_name] = ObjectMetadata(name=object_name)
    return metadata


def _object_metadata(components: QueryComponents,
                     metadata: Mapping[str, ObjectMetadata]) -> List[ObjectMetadata]:
    seen = []
    result = []
    for name in components.objects:
        if name in seen:
            continue
        seen.append(name)
        result.append(metadata.get(name) or ObjectMetadata(name=name))
    return result


def analyze_complexity(components: QueryComponents) -> Dict[str, Any]:
    factors = {
        "fieldCount": len(components.fields),
        "objectCount": len(components.objects),
        "subqueryCount": count_subqueries(components.query),
        "joinCount": count_joins(components.query),
        "whereConditions": len(components.where_fields),
    }
    raw_score = (factors["fieldCount"] * 0.1
                 + factors["objectCount"] * 0.5
                 + factors["subqueryCount"] * 2
                 + factors["joinCount"] * 1.5
                 + factors["whereConditions"] * 0.2)
    score = max(1, js_round(raw_score))

    if score > 10:
        level = "very complex"
    elif score > 5:
        level = "complex"
    elif score > 2:
        level = "moderate"
    else:
        level = "simple"

    return {"score": score, "level": level, "factors": factors}


def calculate_selectivity(components: QueryComponents) -> float:
    """Estimated fraction of rows the filter keeps, always in (0, 1]."""
    if not components.where_fields:
        if components.limit_value is not None:
            return max(MIN_SELECTIVITY, min(0.1, components.limit_value / 10000))
        return 0.5

    selectivity = 1.0
    for field_name in components.where_fields:
        if field_name == "Id":
            selectivity *= 0.001
        elif "Date" in field_name:
            selectivity *= 0.1
        elif field_name in ("Type", "Status"):
            selectivity *= 0.2
        else:
            selectivity *= 0.3
    return max(MIN_SELECTIVITY, selectivity)


def identify_used_indexes(components: QueryComponents,
                          metadata: Mapping[str, ObjectMetadata]) -> List[str]:
    used: List[str] = []
    for object_metadata in _object_metadata(components, metadata):
        for field_name in components.where_fields:
            if field_name in object_metadata.indexed_fields and field_name not in used:
                used.append(field_name)
    return used


def has_large_date_range(components: QueryComponents) -> bool:
    if not any(DATE_FIELD.search(f) for f in components.where_fields):
        return False
    return bool(LARGE_DAY_RANGE.search(components.query) or LARGE_MONTH_RANGE.search(components.query))


def estimate_query_cost(components: QueryComponents, selectivity: float,
                        indexed_fields: List[str]) -> str:
    cost = 0 if indexed_fields else 1

    if components.where_fields:
        if selectivity > 0.5:
            cost += 3
        elif selectivity > 0.1:
            cost += 1

    if components.has_order_by and not any(f in components.order_by_fields for f in indexed_fields):
        cost += 2

    cost += len(components.subqueries) * 2

    if "*" in components.fields or len(components.fields) > 10:
        cost += 1

    if has_large_date_range(components):
        cost += 3

    if (not components.has_limit and not components.where_fields
            and ("*" in components.fields or len(components.fields) > 5)):
        cost += 1

    if cost <= 1:
        return "LOW"
    if cost <= 3:
        return "MEDIUM"
    return "HIGH"


def analyze_sorting_cost(components: QueryComponents,
                         metadata: Mapping[str, ObjectMetadata]) -> str:
    if not components.has_order_by:
        return "NONE"
    if not components.order_by_fields:
        return "MEDIUM"
    order_field = components.order_by_fields[0]
    for object_metadata in _object_metadata(components, metadata):
        if order_field in object_metadata.indexed_fields:
            return "LOW"
    return "MEDIUM"


def estimate_result_rows(components: QueryComponents, metadata: Mapping[str, ObjectMetadata],
                         selectivity: float) -> Dict[str, int]:
    total = sum(m.record_count for m in _object_metadata(components, metadata))
    after_filter = math.ceil(total * selectivity)
    if components.limit_value is not None:
        final = min(components.limit_value, after_filter)
    else:
        final = after_filter
    return {"total": total, "afterFilter": after_filter, "final": final}


def analyze_performance(components: QueryComponents,
                        metadata: Mapping[str, ObjectMetadata]) -> Dict[str, Any]:
    selectivity = calculate_selectivity(components)
    indexed_fields = identify_used_indexes(components, metadata)
    return {
        "estimatedCost": estimate_query_cost(components, selectivity, indexed_fields),
        "selectivity": selectivity,
        "indexedFields": indexed_fields,
        "sortingCost": analyze_sorting_cost(components, metadata),
        "hasSubqueries": len(components.subqueries) > 0,
        "estimatedRows": estimate_result_rows(components, metadata, selectivity),
        "scanType": "INDEX_SCAN" if indexed_fields else "TABLE_SCAN",
    }
