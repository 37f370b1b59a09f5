"""Execution plan steps, recommendations and warnings for analyzed queries."""
import re
from typing import Any, Dict, List

from .query_components import QueryComponents, count_subqueries
from .query_cost import has_large_date_range

RELATIVE_DATE_LITERAL = re.compile(r"LAST_N_DAYS|THIS_YEAR|LAST_N_MONTHS", re.IGNORECASE)


def _filter_cost(selectivity: float) -> str:
    if selectivity < 0.1:
        return "LOW"
    if selectivity < 0.5:
        return "MEDIUM"
    return "HIGH"


def build_execution_plan(components: QueryComponents, performance: Dict[str, Any]) -> Dict[str, Any]:
    """Order the operations a query implies: FILTER, SORT, LIMIT, then SELECT."""
    rows = performance["estimatedRows"]
    estimated_rows = {
        "initial": rows["total"],
        "afterFilter": rows["afterFilter"],
        "final": rows["final"],
    }
    steps: List[Dict[str, Any]] = []

    def add_step(operation, description, step_rows, cost):
        steps.append({
            "step": len(steps) + 1,
            "operation": operation,
            "description": description,
            "estimatedRows": step_rows,
            "cost": cost,
        })

    if components.has_where:
        add_step("FILTER", f"Apply WHERE conditions on {', '.join(components.where_fields)}",
                 estimated_rows["afterFilter"], _filter_cost(performance["selectivity"]))

    if components.has_order_by:
        add_step("SORT", f"Sort by {', '.join(components.order_by_fields)}",
                 estimated_rows["afterFilter"], performance["sortingCost"])

    if components.has_limit:
        if components.limit_value is not None:
            limit_rows = min(components.limit_value, estimated_rows["afterFilter"])
            description = f"Limit results to {components.limit_value} rows"
        else:
            # Bind variable or other non-numeric limit
            limit_rows = estimated_rows["afterFilter"]
            description = "Apply LIMIT clause"
        add_step("LIMIT", description, limit_rows, "LOW")

    add_step("SELECT", f"Project fields: {', '.join(components.fields)}", estimated_rows["final"], "LOW")

    return {"steps": steps, "estimatedRows": estimated_rows, "totalSteps": len(steps)}


def generate_recommendations(components: QueryComponents) -> List[str]:
    """Advice for validate_soql, derived from the query text alone."""
    recommendations = []

    if "*" in components.fields:
        recommendations.append("Avoid SELECT * for better performance")

    if not components.has_limit and (RELATIVE_DATE_LITERAL.search(components.query)
                                     or len(components.where_fields) > 3):
        recommendations.append("Consider adding LIMIT clause")

    if len(components.where_fields) > 5:
        recommendations.append("Consider indexing frequently queried fields")

    if count_subqueries(components.query) > 2:
        recommendations.append("Consider optimizing subqueries or using relationships")

    return recommendations


def generate_performance_recommendations(components: QueryComponents,
                                         performance: Dict[str, Any]) -> List[str]:
    """Advice for explain_query_plan, keyed off which fields are indexed."""
    recommendations = []
    indexed_fields = performance["indexedFields"]

    if "*" in components.fields:
        recommendations.append("Avoid SELECT * - specify only needed fields")

    if not components.has_limit and performance["estimatedRows"]["total"] > 1000:
        recommendations.append("Add LIMIT clause to control result size")

    for field_name in components.where_fields:
        if field_name not in indexed_fields:
            recommendations.append(f"Consider creating index on {field_name} field")

    if components.has_order_by and components.order_by_fields:
        order_field = components.order_by_fields[0]
        if order_field not in indexed_fields:
            recommendations.append(f"Consider adding index on {order_field} field for ORDER BY")

    if len(components.subqueries) > 1:
        recommendations.append("Multiple subqueries may impact performance")

    if performance["selectivity"] > 0.7:
        recommendations.append("Query may return large result set - consider adding more selective filters")

    return recommendations


def generate_performance_warnings(components: QueryComponents,
                                  performance: Dict[str, Any]) -> List[str]:
    warnings = []

    if has_large_date_range(components):
        warnings.append("Large date range query may be slow")

    if performance["estimatedCost"] == "HIGH":
        warnings.append("Query estimated to have high execution cost")

    if performance["estimatedRows"]["total"] > 10000 and not components.has_limit:
        warnings.append("Query may return very large result set")

    return warnings
