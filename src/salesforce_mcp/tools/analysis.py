"""Query analysis and schema tools that never execute queries."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

import requests
from simple_salesforce.exceptions import SalesforceResourceNotFound

from ..errors import ErrorCode, ToolError, error_message
from ..query_analysis import analyze_query, analyze_query_performance, collect_objects
from ..query_cost import fetch_object_metadata
from ..query_validator import validate_for_explain
from ..salesforce import describe_sobject
from ..sanitizer import sanitize_picklist_values
from .base import READ_ONLY, Tool

logger = logging.getLogger(__name__)

PICKLIST_TYPES = ("picklist", "multipicklist")


def require_query(params: Dict[str, Any], tool_name: str) -> str:
    """Check the ``query`` parameter and return it trimmed."""
    query = params.get("query")
    if query is None:
        raise ToolError("query is required", ErrorCode.INVALID_PARAMS, tool_name)
    if not isinstance(query, str):
        raise ToolError("query must be a string", ErrorCode.INVALID_PARAMS, tool_name)
    if not query.strip() or len(query) < 5:
        raise ToolError("query must be at least 5 characters", ErrorCode.INVALID_PARAMS, tool_name)
    return query.strip()


def require_name(params: Dict[str, Any], key: str, tool_name: str) -> str:
    value = params.get(key)
    if value == "" or (isinstance(value, str) and not value.strip()):
        raise ToolError(f"{key} cannot be empty", ErrorCode.INVALID_PARAMS, tool_name)
    if value is None:
        raise ToolError(f"{key} is required", ErrorCode.INVALID_PARAMS, tool_name)
    if not isinstance(value, str):
        raise ToolError(f"{key} must be a string", ErrorCode.INVALID_PARAMS, tool_name)
    return value


class ValidateSoqlTool(Tool):
    name = "validate_soql"
    description = ("Validate SOQL syntax and analyze query structure without execution, "
                   "with injection prevention and security analysis")
    annotations = READ_ONLY

    def execute(self, params, client):
        query = require_query(params, self.name)
        logger.info(f"Validating SOQL query ({len(query)} chars)")
        self._require_connection(client)

        try:
            analysis = analyze_query(query)
        except Exception as e:
            logger.error(f"Failed to validate SOQL query: {str(e)}")
            raise ToolError(f"Failed to validate SOQL query: {error_message(e)}",
                            ErrorCode.INTERNAL_ERROR, self.name, cause=e)

        logger.info(f"SOQL validation completed: valid={analysis['isValid']}, "
                    f"security issues={len(analysis['securityIssues'])}, "
                    f"syntax errors={len(analysis['syntaxErrors'])}")
        return json.dumps(analysis, indent=2)


class ExplainQueryPlanTool(Tool):
    name = "explain_query_plan"
    description = ("Analyze SOQL query performance characteristics and provide execution "
                   "plan insights without executing the query")
    annotations = READ_ONLY

    def execute(self, params, client):
        query = require_query(params, self.name)
        logger.info(f"Analyzing SOQL query performance ({len(query)} chars)")
        sf = self._require_connection(client)

        is_valid, errors = validate_for_explain(query)
        if not is_valid:
            return json.dumps({
                "query": query,
                "isValid": False,
                "errors": errors,
                "message": "Query has syntax errors. Please fix before analyzing performance.",
            }, indent=2)

        try:
            metadata = fetch_object_metadata(sf, collect_objects(query))
            analysis = analyze_query_performance(query, metadata)
        except Exception as e:
            logger.error(f"Failed to analyze SOQL query performance: {str(e)}")
            raise ToolError(f"Failed to analyze query performance: {error_message(e)}",
                            ErrorCode.INTERNAL_ERROR, self.name, cause=e)

        analysis["metadata"]["analysisTimestamp"] = datetime.now(timezone.utc).isoformat()
        logger.info(f"SOQL performance analysis completed: cost={analysis['performance']['estimatedCost']}, "
                    f"recommendations={len(analysis['recommendations'])}")
        return json.dumps(analysis, indent=2)


class GetPicklistValuesTool(Tool):
    name = "get_picklist_values"
    description = ("Retrieve picklist values for a specific Salesforce field with security "
                   "validation and dependency information")
    annotations = READ_ONLY

    def execute(self, params, client):
        object_name = require_name(params, "objectName", self.name)
        field_name = require_name(params, "fieldName", self.name)
        include_inactive = bool(params.get("includeInactive", False))

        logger.info(f"Retrieving picklist values for {object_name}.{field_name}")
        sf = self._require_connection(client)

        try:
            describe = describe_sobject(sf, object_name)
        except SalesforceResourceNotFound as e:
            raise ToolError(f"Invalid object name: {object_name}", ErrorCode.RESOURCE_NOT_FOUND,
                            self.name, cause=e)
        except requests.Timeout as e:
            raise ToolError(f"Failed to retrieve picklist values: {error_message(e)}",
                            ErrorCode.RATE_LIMIT_EXCEEDED, self.name, cause=e)
        except Exception as e:
            message = error_message(e)
            if "INVALID_TYPE" in message:
                raise ToolError(f"Invalid object name: {object_name}", ErrorCode.RESOURCE_NOT_FOUND,
                                self.name, cause=e)
            if "timeout" in message.lower():
                raise ToolError(f"Failed to retrieve picklist values: {message}",
                                ErrorCode.RATE_LIMIT_EXCEEDED, self.name, cause=e)
            logger.error(f"Failed to retrieve picklist values: {message}")
            raise ToolError(f"Failed to retrieve picklist values: {message}",
                            ErrorCode.INTERNAL_ERROR, self.name, cause=e)

        field_describe = next(
            (f for f in describe.get("fields") or [] if f.get("name", "").lower() == field_name.lower()),
            None,
        )
        if field_describe is None:
            raise ToolError(f"Field {field_name} not found on {object_name} object",
                            ErrorCode.RESOURCE_NOT_FOUND, self.name)
        if field_describe.get("accessible") is False:
            raise ToolError(f"Access denied: insufficient permissions to read field {field_name}",
                            ErrorCode.AUTHENTICATION_FAILED, self.name)
        if field_describe.get("type") not in PICKLIST_TYPES:
            raise ToolError(f"Field {field_name} is not a picklist field", ErrorCode.INVALID_PARAMS, self.name)

        values = field_describe.get("picklistValues") or []
        if not include_inactive:
            values = [v for v in values if v.get("active") is True]
        values = sanitize_picklist_values(values)

        result = {
            "objectName": object_name,
            "fieldName": field_describe["name"],
            "fieldType": field_describe["type"],
            "values": values,
            "isDependentPicklist": bool(field_describe.get("dependentPicklist")),
            "controllerField": field_describe.get("controllerName"),
            "totalValues": len(values),
            "includesInactive": include_inactive,
        }
        logger.info(f"Retrieved {len(values)} picklist values for {object_name}.{field_name}")
        return json.dumps(result, indent=2)
