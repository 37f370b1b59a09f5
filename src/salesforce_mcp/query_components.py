"""Clause splitting and component extraction for SOQL query text.

This is pattern matching over the query string, not a parser. A single
masking pass hides string literals and parenthesized subqueries so that the
clause regexes find the clauses of the outer query first; when a clause only
exists inside a subquery the text with only string literals masked is
searched instead. The result is a best-effort extraction that never fails,
malformed input is reported by the validators in ``query_validator``.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern

SQL_KEYWORDS = frozenset({
    "AND", "OR", "NOT", "IN", "LIKE", "NULL", "TRUE", "FALSE", "INCLUDES", "EXCLUDES",
})
DATE_LITERALS = frozenset({
    "YESTERDAY", "TODAY", "TOMORROW",
    "LAST_WEEK", "THIS_WEEK", "NEXT_WEEK",
    "LAST_MONTH", "THIS_MONTH", "NEXT_MONTH",
    "LAST_90_DAYS", "NEXT_90_DAYS",
    "LAST_QUARTER", "THIS_QUARTER", "NEXT_QUARTER",
    "LAST_YEAR", "THIS_YEAR", "NEXT_YEAR",
    "LAST_FISCAL_QUARTER", "THIS_FISCAL_QUARTER", "NEXT_FISCAL_QUARTER",
    "LAST_FISCAL_YEAR", "THIS_FISCAL_YEAR", "NEXT_FISCAL_YEAR",
})

SELECT_LIST = re.compile(r"SELECT\s+(.*?)\s+FROM\b", re.IGNORECASE | re.DOTALL)
MAIN_OBJECT = re.compile(r"FROM\s+(\w+)", re.IGNORECASE)
SUBQUERY_OBJECT = re.compile(r"\(\s*SELECT\s+.*?\s+FROM\s+(\w+)", re.IGNORECASE | re.DOTALL)
WHERE_CLAUSE = re.compile(
    r"WHERE\s+(.*?)(?:\s+ORDER\s+BY|\s+GROUP\s+BY|\s+LIMIT|$)", re.IGNORECASE | re.DOTALL)
ORDER_BY_CLAUSE = re.compile(r"ORDER\s+BY\s+(.*?)(?:\s+LIMIT|\s+OFFSET|$)", re.IGNORECASE | re.DOTALL)
LIMIT_CLAUSE = re.compile(r"LIMIT\s+(\d+)", re.IGNORECASE)
SUBQUERY = re.compile(r"\(\s*(SELECT[^)]+)\)", re.IGNORECASE)
SUBQUERY_START = re.compile(r"\(\s*SELECT", re.IGNORECASE)
# Bind variables (:name) and parameterized date literals (LAST_N_DAYS:30) are not fields
WHERE_IDENTIFIER = re.compile(r"(?<!:)\b[A-Za-z_][A-Za-z0-9_]*\b(?!\s*:)")
SORT_SUFFIX = re.compile(r"(\s+(ASC|DESC))?(\s+NULLS\s+(FIRST|LAST))?$", re.IGNORECASE)
INNERMOST_PARENS = re.compile(r"\([^()]*\)")
JOIN_KEYWORD = re.compile(r"\bJOIN\b", re.IGNORECASE)

HAS_WHERE = re.compile(r"\bWHERE\b", re.IGNORECASE)
HAS_ORDER_BY = re.compile(r"\bORDER\s+BY\b", re.IGNORECASE)
HAS_LIMIT = re.compile(r"\bLIMIT\b", re.IGNORECASE)
HAS_GROUP_BY = re.compile(r"\bGROUP\s+BY\b", re.IGNORECASE)
HAS_HAVING = re.compile(r"\bHAVING\b", re.IGNORECASE)
STRING_LITERAL = re.compile(r"'(?:\\.|[^'\\])*'" + r'|"(?:\\.|[^"\\])*"', re.DOTALL)


@dataclass(frozen=True)
class QueryClauses:
    """Clause bodies of one query, sliced from the original text."""
    select_list: Optional[str] = None
    main_object: Optional[str] = None
    where: Optional[str] = None
    order_by: Optional[str] = None
    limit: Optional[str] = None


@dataclass
class QueryComponents:
    query: str
    objects: List[str] = field(default_factory=list)
    fields: List[str] = field(default_factory=list)
    where_fields: List[str] = field(default_factory=list)
    order_by_fields: List[str] = field(default_factory=list)
    limit_value: Optional[int] = None
    subqueries: List[str] = field(default_factory=list)
    has_where: bool = False
    has_order_by: bool = False
    has_limit: bool = False
    has_group_by: bool = False
    has_having: bool = False


def mask_nested(query: str) -> str:
    """Blank out string literals and ``(SELECT ...)`` groups, keeping offsets."""
    out = []
    stack = []
    quote = None
    i = 0
    while i < len(query):
        char = query[i]
        hidden = quote is not None or "sub" in stack
        if quote is not None:
            if char == "\\" and i + 1 < len(query):
                out.append("  ")
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
            hidden = True
        elif char == "(":
            kind = "sub" if SUBQUERY_START.match(query, i) else "plain"
            stack.append(kind)
            hidden = hidden or kind == "sub"
        elif char == ")" and stack:
            stack.pop()
        out.append(" " if hidden else char)
        i += 1
    return "".join(out)


def mask_string_literals(query: str) -> str:
    return STRING_LITERAL.sub(lambda m: " " * len(m.group(0)), query)


def _search(pattern: Pattern, masked: str, query: str) -> Optional[str]:
    match = pattern.search(masked) or pattern.search(mask_string_literals(query))
    if match:
        return query[match.start(1):match.end(1)]
    return None


def split_clauses(query: str) -> QueryClauses:
    masked = mask_nested(query)
    return QueryClauses(
        select_list=_search(SELECT_LIST, masked, query),
        main_object=_search(MAIN_OBJECT, masked, query),
        where=_search(WHERE_CLAUSE, masked, query),
        order_by=_search(ORDER_BY_CLAUSE, masked, query),
        limit=_search(LIMIT_CLAUSE, masked, query),
    )


def split_top_level(text: str, separator: str = ",") -> List[str]:
    parts = []
    depth = 0
    current = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def _strip_parenthesized(text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        text = INNERMOST_PARENS.sub("", text)
    return text


def extract_fields(select_list: Optional[str]) -> List[str]:
    """Selected field names, relationship paths collapsed to their last segment."""
    if not select_list:
        return []
    if select_list.strip() == "*":
        return ["*"]
    fields = []
    for item in split_top_level(select_list):
        name = _strip_parenthesized(item.strip()).split(".")[-1].strip()
        if name:
            fields.append(name)
    return fields


def extract_where_fields(where: Optional[str]) -> List[str]:
    if not where:
        return []
    visible = mask_nested(where)
    return [
        name for name in WHERE_IDENTIFIER.findall(visible)
        if name.upper() not in SQL_KEYWORDS and name.upper() not in DATE_LITERALS
    ]


def extract_order_by_fields(order_by: Optional[str]) -> List[str]:
    if not order_by:
        return []
    fields = []
    for item in split_top_level(order_by):
        name = SORT_SUFFIX.sub("", item.strip()).strip()
        if name:
            fields.append(name)
    return fields


def extract_objects(query: str, main_object: Optional[str]) -> List[str]:
    objects = [main_object] if main_object else []
    objects.extend(SUBQUERY_OBJECT.findall(query))
    return objects


def extract_subqueries(query: str) -> List[str]:
    return SUBQUERY.findall(query)


def count_subqueries(query: str) -> int:
    return len(SUBQUERY_START.findall(query))


def count_joins(query: str) -> int:
    return len(JOIN_KEYWORD.findall(query))


def extract_components(query: str) -> QueryComponents:
    """Extract the objects, fields and clause facts of a query."""
    clauses = split_clauses(query)
    visible = mask_string_literals(query)
    return QueryComponents(
        query=query,
        objects=extract_objects(query, clauses.main_object),
        fields=extract_fields(clauses.select_list),
        where_fields=extract_where_fields(clauses.where),
        order_by_fields=extract_order_by_fields(clauses.order_by),
        limit_value=int(clauses.limit) if clauses.limit is not None else None,
        subqueries=extract_subqueries(query),
        has_where=bool(HAS_WHERE.search(visible)),
        has_order_by=bool(HAS_ORDER_BY.search(visible)),
        has_limit=bool(HAS_LIMIT.search(visible)),
        has_group_by=bool(HAS_GROUP_BY.search(visible)),
        has_having=bool(HAS_HAVING.search(visible)),
    )
