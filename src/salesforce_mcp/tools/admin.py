"""Organization and current-user tools."""
import json
import logging
import re

from ..errors import ErrorCode, ToolError, error_message
from ..salesforce import oauth_get
from .base import READ_ONLY, Tool
from .search import id_for_log

logger = logging.getLogger(__name__)

USER_FIELDS = (
    "Id", "Name", "Email", "Username", "IsActive", "Title", "Department", "Division",
    "CompanyName", "Phone", "MobilePhone", "Alias", "TimeZoneSidKey", "LocaleSidKey",
    "LanguageLocaleKey", "EmailEncodingKey", "UserType", "Profile.Name",
)
OPTIONAL_USER_FIELDS = (
    ("Title", "Title"),
    ("Department", "Department"),
    ("Division", "Division"),
    ("CompanyName", "Company"),
    ("Phone", "Phone"),
    ("MobilePhone", "Mobile"),
    ("Alias", "Alias"),
    ("TimeZoneSidKey", "Time Zone"),
    ("LocaleSidKey", "Locale"),
    ("LanguageLocaleKey", "Language"),
    ("EmailEncodingKey", "Email Encoding"),
)
DISPLAY_NAME_FIELDS = ("Name", "Subject", "Title", "CaseNumber", "OpportunityName", "Title__c")
URL_ID = re.compile(r"/([a-zA-Z0-9]{15,18})\b")
USER_ID = re.compile(r"^[a-zA-Z0-9]{15,18}$")


class GetOrgLimitsTool(Tool):
    name = "get_org_limits"
    description = ("Retrieve Salesforce organization limits and usage statistics including "
                   "API calls, storage, and feature limits")
    annotations = READ_ONLY

    def execute(self, params, client):
        logger.info("Getting organization limits")
        sf = self._require_connection(client)
        try:
            limits = sf.restful("limits/")
        except Exception as e:
            logger.error(f"Failed to get organization limits: {str(e)}")
            raise ToolError(f"Failed to get organization limits: {error_message(e)}",
                            ErrorCode.INTERNAL_ERROR, self.name, cause=e)
        logger.info(f"Retrieved {len(limits or {})} organization limits")
        return json.dumps(limits, indent=2)


def format_user(user) -> str:
    profile = (user.get("Profile") or {}).get("Name") or "[Unknown]"
    output = "Current User Information:\n\n"
    output += f"User ID: {id_for_log(user.get('Id'))}\n"
    output += f"Name: {user.get('Name') or '[Not provided]'}\n"
    output += f"Email: {user.get('Email') or '[Not provided]'}\n"
    output += f"Username: {user.get('Username') or '[Not provided]'}\n"
    output += f"Active: {'Yes' if user.get('IsActive') else 'No'}\n"
    output += f"Profile: {profile}\n"
    output += f"User Type: {user.get('UserType') or '[Not specified]'}\n"
    for key, label in OPTIONAL_USER_FIELDS:
        if user.get(key):
            output += f"{label}: {user[key]}\n"
    return output


class GetUserInfoTool(Tool):
    name = "get_user_info"
    description = ("Retrieve current user profile information including name, email, profile, "
                   "and organizational details")
    annotations = READ_ONLY

    def execute(self, params, client):
        logger.info("Getting current user information")
        sf = self._require_connection(client)
        try:
            user_id = oauth_get(sf, "userinfo").get("user_id")
            if not user_id or not USER_ID.match(user_id):
                raise ToolError("Unable to determine current user ID", ErrorCode.INTERNAL_ERROR, self.name)
            result = sf.query(f"SELECT {', '.join(USER_FIELDS)} FROM User WHERE Id = '{user_id}'")
        except ToolError:
            raise
        except Exception as e:
            logger.error(f"Failed to get user information: {str(e)}")
            raise ToolError(f"Failed to get user information: {error_message(e)}",
                            ErrorCode.INTERNAL_ERROR, self.name, cause=e)

        records = result.get("records") or []
        if not records:
            logger.warning("No user records found for current user")
            raise ToolError("Current user information not found", ErrorCode.RESOURCE_NOT_FOUND, self.name)
        if len(records) > 1:
            logger.error(f"Multiple user records returned: {len(records)}")
            raise ToolError("Multiple user records returned for current user",
                            ErrorCode.INTERNAL_ERROR, self.name)

        logger.info(f"Retrieved user information for {id_for_log(records[0].get('Id'))}")
        return format_user(records[0])


def display_name(item) -> str:
    for key in DISPLAY_NAME_FIELDS:
        if isinstance(item.get(key), str) and item[key]:
            return item[key]
    for key, value in item.items():
        lowered = key.lower()
        if (isinstance(value, str) and any(word in lowered for word in ("name", "title", "subject"))
                and "Id" not in key and "__c" not in key):
            return value
    return "[No name available]"


def url_for_log(url: str) -> str:
    return URL_ID.sub(lambda m: f"/{id_for_log(m.group(1))}", url)


def format_recent_items(items) -> str:
    if not items:
        return "No recent items found for the current user."

    output = f"Recently Accessed Items:\n\nTotal items: {len(items)}\n\n"
    for index, item in enumerate(items, 1):
        attributes = item.get("attributes") or {}
        object_type = attributes.get("type") or "Unknown"
        output += f"{index}. {object_type}: {display_name(item)}\n"
        output += f"   ID: {id_for_log(item.get('Id'))}\n"
        if attributes.get("url"):
            output += f"   URL: {url_for_log(attributes['url'])}\n"
        output += "\n"
    return output


class GetRecentItemsTool(Tool):
    name = "get_recent_items"
    description = "Retrieve recently accessed records for the current user"
    annotations = READ_ONLY

    def execute(self, params, client):
        logger.info("Getting recent items for current user")
        sf = self._require_connection(client)
        try:
            items = sf.restful("recent/")
        except Exception as e:
            logger.error(f"Failed to get recent items: {str(e)}")
            raise ToolError(f"Failed to get recent items: {error_message(e)}",
                            ErrorCode.INTERNAL_ERROR, self.name, cause=e)
        logger.info(f"Retrieved {len(items or [])} recent items")
        return format_recent_items(items or [])
