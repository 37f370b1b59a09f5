from salesforce_mcp.query_components import extract_components
from salesforce_mcp.query_cost import ObjectMetadata, analyze_performance
from salesforce_mcp.query_plan import (
    build_execution_plan,
    generate_performance_recommendations,
    generate_performance_warnings,
    generate_recommendations,
)

METADATA = {"Account": ObjectMetadata("Account", 50000, ["Id", "Name"])}


def _analyze(query, metadata=METADATA):
    components = extract_components(query)
    return components, analyze_performance(components, metadata)


def test_plan_orders_steps():
    components, performance = _analyze(
        "SELECT Id, Name FROM Account WHERE Industry = 'Tech' ORDER BY Name LIMIT 10")
    plan = build_execution_plan(components, performance)

    assert [s["operation"] for s in plan["steps"]] == ["FILTER", "SORT", "LIMIT", "SELECT"]
    assert [s["step"] for s in plan["steps"]] == [1, 2, 3, 4]
    assert plan["totalSteps"] == 4
    assert plan["steps"][0]["cost"] == "MEDIUM"
    assert plan["steps"][0]["description"] == "Apply WHERE conditions on Industry"
    assert plan["steps"][1]["cost"] == "LOW"
    assert plan["steps"][2]["estimatedRows"] == 10
    assert plan["steps"][3]["estimatedRows"] == 10
    assert plan["steps"][3]["description"] == "Project fields: Id, Name"
    assert plan["estimatedRows"]["initial"] == 50000


def test_plan_always_has_select_step():
    components, performance = _analyze("SELECT Id FROM Account")
    plan = build_execution_plan(components, performance)
    assert plan["steps"] == [{
        "step": 1,
        "operation": "SELECT",
        "description": "Project fields: Id",
        "estimatedRows": 25000,
        "cost": "LOW",
    }]
    assert plan["estimatedRows"] == {"initial": 50000, "afterFilter": 25000, "final": 25000}


def test_selective_filter_is_low_cost():
    components, performance = _analyze("SELECT Id FROM Account WHERE Id = '001000000000000'")
    plan = build_execution_plan(components, performance)
    assert plan["steps"][0]["cost"] == "LOW"


def test_validate_recommendations():
    assert generate_recommendations(extract_components("SELECT * FROM Account")) == [
        "Avoid SELECT * for better performance"]
    assert generate_recommendations(extract_components(
        "SELECT Id FROM Opportunity WHERE CloseDate = THIS_YEAR")) == ["Consider adding LIMIT clause"]
    assert generate_recommendations(extract_components(
        "SELECT Id FROM Opportunity WHERE CloseDate = THIS_YEAR LIMIT 5")) == []


def test_many_where_fields():
    query = "SELECT Id FROM Account WHERE A = 1 AND B = 2 AND C = 3 AND D = 4 AND E = 5 AND F = 6"
    assert generate_recommendations(extract_components(query)) == [
        "Consider adding LIMIT clause",
        "Consider indexing frequently queried fields",
    ]


def test_many_subqueries():
    query = ("SELECT Id, (SELECT Id FROM Contacts), (SELECT Id FROM Opportunities), "
             "(SELECT Id FROM Cases) FROM Account LIMIT 5")
    assert generate_recommendations(extract_components(query)) == [
        "Consider optimizing subqueries or using relationships"]


def test_performance_recommendations_for_select_star():
    components, performance = _analyze("SELECT * FROM Account")
    assert generate_performance_recommendations(components, performance) == [
        "Avoid SELECT * - specify only needed fields",
        "Add LIMIT clause to control result size",
    ]
    assert generate_performance_warnings(components, performance) == [
        "Query may return very large result set"]


def test_performance_recommendations_for_unindexed_fields():
    components, performance = _analyze(
        "SELECT Id FROM Account WHERE Industry = 'Tech' ORDER BY Industry LIMIT 10")
    recommendations = generate_performance_recommendations(components, performance)
    assert "Consider creating index on Industry field" in recommendations
    assert "Consider adding index on Industry field for ORDER BY" in recommendations
    assert "Add LIMIT clause to control result size" not in recommendations
    assert generate_performance_warnings(components, performance) == [
        "Query estimated to have high execution cost"]


def test_low_selectivity_recommendation():
    components = extract_components("SELECT Id FROM Account WHERE Id != null LIMIT 5")
    performance = {"indexedFields": ["Id"], "selectivity": 0.8, "estimatedRows": {"total": 10}}
    assert generate_performance_recommendations(components, performance) == [
        "Query may return large result set - consider adding more selective filters"]


def test_large_date_range_warning():
    components, performance = _analyze("SELECT Id FROM Opportunity WHERE CloseDate = LAST_N_DAYS:400", {})
    warnings = generate_performance_warnings(components, performance)
    assert warnings[:2] == ["Large date range query may be slow", "Query estimated to have high execution cost"]


def test_limit_inside_literal_adds_no_limit_step():
    components, performance = _analyze("SELECT Id FROM Account WHERE Name = 'no limit here'")
    plan = build_execution_plan(components, performance)
    assert [s["operation"] for s in plan["steps"]] == ["FILTER", "SELECT"]
    assert all("None" not in s["description"] for s in plan["steps"])


def test_date_literals_get_no_index_advice():
    components, performance = _analyze("SELECT Id FROM Account WHERE CreatedDate = LAST_N_DAYS:30")
    recommendations = generate_performance_recommendations(components, performance)
    assert "Consider creating index on CreatedDate field" in recommendations
    assert not any("LAST_N_DAYS" in r for r in recommendations)
