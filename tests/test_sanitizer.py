from conftest import ACCOUNT_DESCRIBE, FakeSalesforce
from salesforce_mcp import sanitizer
from salesforce_mcp.sanitizer import (
    field_permissions,
    mask_sensitive_value,
    sanitize_picklist_values,
    sanitize_record,
    sanitize_records,
)


def test_ssn_and_card_fields_are_masked():
    record = {
        "attributes": {"type": "Account"},
        "SSN__c": "123-45-6789",
        "CreditCard__c": "4111-1111-1111-1111",
    }
    sanitized = sanitize_record(record)
    assert sanitized["SSN__c"] == "***-**-****"
    assert sanitized["CreditCard__c"] == "****-****-****-****"
    assert "6789" not in str(sanitized)
    assert "4111" not in str(sanitized)
    assert sanitized["attributes"] == {"type": "Account"}


def test_name_keyed_masking():
    assert mask_sensitive_value("123456789", "SocialNumber") == "*********"
    assert mask_sensitive_value("4111111111111111", "Credit_Card__c") == "****-****-****-****"
    assert mask_sensitive_value("4222222222222", "CreditCard__c") == "*" * 16


def test_value_patterns_masked_in_any_field():
    assert mask_sensitive_value("Call 123-45-6789 today", "Description") == "Call ***-**-**** today"
    assert mask_sensitive_value("card 4111 1111 1111 1111", "Notes") == "card ****-****-****-****"
    assert mask_sensitive_value("ref 123456789012345", "Notes") == "ref " + "*" * 15
    assert mask_sensitive_value("Acme Corp", "Name") == "Acme Corp"


def test_inaccessible_fields_are_removed():
    fields = field_permissions(ACCOUNT_DESCRIBE)
    sanitized = sanitize_record({"Id": "001", "Name": "Acme", "Hidden__c": "secret"}, fields)
    assert sanitized == {"Id": "001", "Name": "Acme"}


def test_non_string_values_are_kept():
    sanitized = sanitize_record({"AnnualRevenue": 123456789, "IsDeleted": False, "Owner": None})
    assert sanitized == {"AnnualRevenue": 123456789, "IsDeleted": False, "Owner": None}


def test_sanitizing_twice_changes_nothing():
    record = {
        "attributes": {"type": "Contact"},
        "SSN__c": "123456789",
        "CreditCard__c": "4111111111111",
        "Description": "SSN 123-45-6789, card 4111-1111-1111-1111, ref 1234567890123456789",
    }
    once = sanitize_record(record)
    assert sanitize_record(once) == once


def test_sanitize_records_describes_each_type_once():
    sf = FakeSalesforce(describes={"Account": ACCOUNT_DESCRIBE})
    records = [
        {"attributes": {"type": "Account"}, "Id": "1", "Hidden__c": "x", "SSN__c": "123-45-6789"},
        {"attributes": {"type": "Account"}, "Id": "2", "Hidden__c": "y"},
        {"attributes": {"type": "Widget__c"}, "Id": "3", "Hidden__c": "z"},
    ]
    sanitized = sanitize_records(records, sf)

    assert len(sanitized) == 3
    assert [r["Id"] for r in sanitized] == ["1", "2", "3"]
    assert "Hidden__c" not in sanitized[0]
    assert sanitized[0]["SSN__c"] == "***-**-****"
    assert sanitized[2]["Hidden__c"] == "z"
    assert sf.describe_calls == ["Account", "Widget__c"]


def test_sanitize_records_handles_empty_input():
    assert sanitize_records([], FakeSalesforce()) == []
    assert sanitize_records(None, FakeSalesforce()) == []


def test_picklist_labels():
    values = sanitize_picklist_values([
        {"value": "A", "label": None, "active": True},
        {"value": "B", "label": "SSN 123-45-6789", "active": True},
    ])
    assert values[0]["label"] == "A"
    assert values[1]["label"] == "SSN ***-**-****"
    assert values[1]["value"] == "B"
    assert values[1]["active"] is True


def test_malformed_attributes_are_tolerated():
    sf = FakeSalesforce(describes={"Account": ACCOUNT_DESCRIBE})
    records = [
        {"attributes": "Account", "Id": "1", "SSN__c": "123-45-6789"},
        {"attributes": {"type": "Account"}, "Id": "2", "Hidden__c": "x"},
    ]
    sanitized = sanitize_records(records, sf)

    assert [r["Id"] for r in sanitized] == ["1", "2"]
    assert sanitized[0]["SSN__c"] == "***-**-****"
    assert "Hidden__c" not in sanitized[1]
    assert sf.describe_calls == ["Account"]


def test_failing_record_falls_back_to_value_masking(monkeypatch):
    real_sanitize_record = sanitizer.sanitize_record

    def flaky_sanitize_record(record, fields=None):
        if record.get("Id") == "1":
            raise KeyError("name")
        return real_sanitize_record(record, fields)

    monkeypatch.setattr(sanitizer, "sanitize_record", flaky_sanitize_record)
    records = [
        {"attributes": {"type": "Account"}, "Id": "1", "Hidden__c": "123-45-6789"},
        {"attributes": {"type": "Account"}, "Id": "2", "Hidden__c": "y"},
    ]
    sanitized = sanitize_records(records, FakeSalesforce(describes={"Account": ACCOUNT_DESCRIBE}))

    assert len(sanitized) == 2
    assert sanitized[0] == {"attributes": {"type": "Account"}, "Id": "1", "Hidden__c": "***-**-****"}
    assert sanitized[1] == {"attributes": {"type": "Account"}, "Id": "2"}


def test_non_mapping_record_is_kept_in_place():
    sanitized = sanitize_records([["unexpected"], {"Id": "2"}], FakeSalesforce())
    assert sanitized == [["unexpected"], {"Id": "2"}]
