"""Entry points of the SOQL analysis engine.

Both functions are pure: given the same query text (and, for the performance
analysis, the same object metadata) they return the same result. Describe
calls and timestamps belong to the tools that call them.
"""
import logging
from typing import Any, Dict, List, Mapping

from .query_components import extract_components
from .query_cost import ObjectMetadata, analyze_complexity, analyze_performance
from .query_plan import (
    build_execution_plan,
    generate_performance_recommendations,
    generate_performance_warnings,
    generate_recommendations,
)
from .query_validator import detect_query_type, detect_security_issues, detect_syntax_errors

logger = logging.getLogger(__name__)


def analyze_query(query: str) -> Dict[str, Any]:
    """Build the validate_soql report for one query."""
    components = extract_components(query)
    security_issues = detect_security_issues(query)
    syntax_errors = detect_syntax_errors(query)
    return {
        "query": query,
        "isValid": not security_issues and not syntax_errors,
        "queryType": detect_query_type(query),
        "objects": components.objects,
        "fields": components.fields,
        "hasWhereClause": components.has_where,
        "whereFields": components.where_fields,
        "hasOrderBy": components.has_order_by,
        "orderByFields": components.order_by_fields,
        "hasLimit": components.has_limit,
        "limitValue": components.limit_value,
        "securityIssues": security_issues,
        "syntaxErrors": syntax_errors,
        "complexity": analyze_complexity(components),
        "recommendations": generate_recommendations(components),
    }


def collect_objects(query: str) -> List[str]:
    """Every object the performance analysis will need metadata for, deduplicated."""
    components = extract_components(query)
    names = list(components.objects)
    for subquery in components.subqueries:
        names.extend(extract_components(subquery).objects)
    return list(dict.fromkeys(names))


def _analyze_subquery(subquery: str, metadata: Mapping[str, ObjectMetadata]) -> Dict[str, Any]:
    try:
        components = extract_components(subquery)
        return {
            "query": subquery,
            "performance": analyze_performance(components, metadata),
            "objects": components.objects,
        }
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Unable to analyze subquery: {str(e)}")
        return {
            "query": subquery,
            "error": "Unable to analyze subquery",
            "performance": {"estimatedCost": "UNKNOWN"},
        }


def analyze_query_performance(query: str, metadata: Mapping[str, ObjectMetadata]) -> Dict[str, Any]:
    """Build the explain_query_plan report, without the analysis timestamp."""
    components = extract_components(query)
    performance = analyze_performance(components, metadata)
    return {
        "query": query,
        "isValid": True,
        "performance": performance,
        "executionPlan": build_execution_plan(components, performance),
        "subqueries": [_analyze_subquery(s, metadata) for s in components.subqueries],
        "recommendations": generate_performance_recommendations(components, performance),
        "warnings": generate_performance_warnings(components, performance),
        "metadata": {
            "objectsAnalyzed": components.objects,
            "fieldsAnalyzed": components.fields,
            "hasSubqueries": len(components.subqueries) > 0,
        },
    }
