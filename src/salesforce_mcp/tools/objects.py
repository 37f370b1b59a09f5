"""SOQL execution and object metadata tools."""
import json
import logging
import re

from ..errors import ErrorCode, ToolError, error_message
from ..query_validator import QueryValidator
from ..salesforce import describe_sobject
from .base import Tool

logger = logging.getLogger(__name__)

QUOTED = re.compile(r"(['\"])[^'\"]*\1")
LOGGED_ID = re.compile(r"\b\d{15,18}\b")

OBJECT_TYPES = ("all", "standard", "custom")
DESCRIBED_FIELD_COUNT = 10

SOBJECT_SUMMARY_KEYS = (
    "name", "label", "labelPlural", "keyPrefix", "createable", "updateable",
    "deletable", "queryable", "searchable", "custom",
)
FIELD_SUMMARY_KEYS = (
    "name", "label", "type", "length", "precision", "scale", "createable",
    "updateable", "nillable", "unique", "custom", "defaultValue", "referenceTo",
    "relationshipName",
)
RECORD_TYPE_KEYS = ("name", "recordTypeId", "defaultRecordTypeMapping", "master", "available")


def query_for_log(query: str) -> str:
    """Redact string literals and record IDs."""
    return LOGGED_ID.sub("[ID_REDACTED]", QUOTED.sub(r"\1[REDACTED]\1", query))


def _pick(source, keys):
    return {key: source.get(key) for key in keys}


class SoqlQueryTool(Tool):
    name = "soql_query"
    description = ("Execute a SOQL query against Salesforce with injection prevention "
                   "and pagination support")
    annotations = {"title": "Execute SOQL Query", "readOnlyHint": True, "idempotentHint": True}

    def execute(self, params, client):
        query = params.get("query")
        limit = params.get("limit") or 200
        if not isinstance(query, str) or not query.strip():
            raise ToolError("query is required", ErrorCode.INVALID_PARAMS, self.name)

        is_valid, message = QueryValidator.validate_query(query)
        if not is_valid:
            raise ToolError(message, ErrorCode.INVALID_PARAMS, self.name)

        sf = self._require_connection(client)

        try:
            logger.info(f"Executing SOQL query: {query_for_log(query)}")
            result = sf.query(query)
        except Exception as e:
            logger.error(f"Failed to execute SOQL query {query_for_log(query)}: {str(e)}")
            raise ToolError(f"SOQL query execution failed: {error_message(e)}",
                            ErrorCode.INTERNAL_ERROR, self.name, cause=e)

        records = [
            {k: v for k, v in record.items() if k != "attributes"}
            for record in (result.get("records") or [])[:limit]
        ]
        total_size = result.get("totalSize", len(records))
        done = result.get("done", True)
        logger.info(f"SOQL query returned {len(records)} of {total_size} records")

        summary = "Query executed successfully.\n\n"
        if not records:
            summary += "No records found matching the query criteria.\n"
            summary += f"Total records: {total_size}"
            return summary

        summary += f"Showing {len(records)} record{'' if len(records) == 1 else 's'}"
        if len(records) < total_size:
            summary += f" (first {len(records)} of {total_size} total records available)"
        if not done:
            summary += "\nMore records available - use pagination to retrieve additional results."
        summary += f"\n\nResults:\n{json.dumps(records, indent=2)}"
        summary += (f"\n\nQuery Summary:\n- Total records: {total_size}\n"
                    f"- Records returned: {len(records)}\n"
                    f"- Query complete: {'Yes' if done else 'No'}")
        return summary


class DescribeObjectTool(Tool):
    name = "describe_object"
    description = "Get detailed metadata for a Salesforce object, including fields and record types"
    annotations = {"title": "Describe Salesforce Object", "readOnlyHint": True,
                   "destructiveHint": False, "idempotentHint": True}

    def execute(self, params, client):
        object_name = params.get("objectName")
        logger.info(f"Describing Salesforce object {object_name}")
        try:
            sf = self._require_connection(client)
            describe = describe_sobject(sf, object_name)
        except Exception as e:
            logger.error(f"Failed to describe {object_name}: {str(e)}")
            return f"Error describing object {object_name}: {error_message(e)}"

        result = _pick(describe, SOBJECT_SUMMARY_KEYS)
        result["recordTypeInfos"] = [_pick(rt, RECORD_TYPE_KEYS) for rt in describe.get("recordTypeInfos") or []]
        result["fields"] = [_pick(f, FIELD_SUMMARY_KEYS)
                            for f in (describe.get("fields") or [])[:DESCRIBED_FIELD_COUNT]]
        logger.info(f"Described {object_name}: {len(describe.get('fields') or [])} fields")
        return json.dumps(result, indent=2)


class ListObjectsTool(Tool):
    name = "list_objects"
    description = "Lists all available Salesforce objects with filtering options"
    annotations = {"title": "List Salesforce Objects", "readOnlyHint": True,
                   "destructiveHint": False, "idempotentHint": True}

    def execute(self, params, client):
        object_type = params.get("objectType") or "all"
        limit = params.get("limit") or 100
        if object_type not in OBJECT_TYPES:
            return f"Error listing objects: objectType must be one of {', '.join(OBJECT_TYPES)}"

        logger.info(f"Listing {object_type} Salesforce objects (limit {limit})")
        try:
            sf = self._require_connection(client)
            sobjects = sf.describe().get("sobjects") or []
        except Exception as e:
            logger.error(f"Failed to list objects: {str(e)}")
            return f"Error listing objects: {error_message(e)}"

        if object_type == "standard":
            sobjects = [o for o in sobjects if not o.get("custom")]
        elif object_type == "custom":
            sobjects = [o for o in sobjects if o.get("custom")]
        returned = sobjects[:limit]

        result = {
            "totalCount": len(sobjects),
            "returnedCount": len(returned),
            "objectType": object_type,
            "objects": [_pick(o, SOBJECT_SUMMARY_KEYS + ("deprecatedAndHidden",)) for o in returned],
        }
        return json.dumps(result, indent=2)
