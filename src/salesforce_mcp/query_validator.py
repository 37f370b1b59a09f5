"""SOQL and SOSL validation rules.

Each rule table is an ordered list of ``(label, predicate)`` pairs evaluated
against the raw query text; every matching rule contributes its label, in
table order.
"""
import re
from typing import Callable, List, Optional, Sequence, Tuple

from .query_components import mask_string_literals, split_clauses

Rule = Tuple[str, Callable[[str], bool]]

MAX_SUBQUERY_DEPTH = 2
DANGEROUS_FUNCTIONS = ("EVAL", "EXEC", "EXECUTE", "SCRIPT")

UNION_KEYWORD = re.compile(r"\bUNION\b", re.IGNORECASE)
DANGEROUS_FUNCTION_CALL = re.compile(
    r"\b(?:%s)\(" % "|".join(DANGEROUS_FUNCTIONS), re.IGNORECASE)
FROM_KEYWORD = re.compile(r"\bFROM\b", re.IGNORECASE)
COMMA_BEFORE_FROM = re.compile(r",\s*FROM\b", re.IGNORECASE)
TWO_WORDS = re.compile(r"\b\w+\s+\w+\b")
FUNCTION_CALL = re.compile(r"\w+\s*\(")
WHERE_KEYWORD = re.compile(r"\bWHERE\b", re.IGNORECASE)
WHERE_AT_END = re.compile(r"WHERE\s*$", re.IGNORECASE)
WHERE_WITHOUT_CONDITIONS = re.compile(r"WHERE\s+(ORDER\s+BY|GROUP\s+BY|LIMIT|$)", re.IGNORECASE)
ORDER_BY_AT_END = re.compile(r"ORDER\s+BY\s*$", re.IGNORECASE)
SELECT_LOOKAHEAD = re.compile(r"\s*SELECT", re.IGNORECASE)

# Patterns that try to break out of the FIND {...} search term
SOSL_INJECTION_PATTERNS = (
    re.compile(r"}\s*(RETURNING|IN|LIMIT)", re.IGNORECASE),
    re.compile(r"\"\s*(OR|AND|UNION)", re.IGNORECASE),
    re.compile(r"'\s*(OR|AND|UNION)", re.IGNORECASE),
    re.compile(r"}\s*RETURNING\s+\w+", re.IGNORECASE),
    re.compile(r"}\s*LIMIT\s+\d+", re.IGNORECASE),
)

DANGEROUS_PATTERNS = (
    re.compile(r";\s*(DROP|DELETE|INSERT|UPDATE|CREATE|ALTER|TRUNCATE)", re.IGNORECASE),
    re.compile(r"--"),
    re.compile(r"/\*"),
    re.compile(r"\bEXEC\b", re.IGNORECASE),
    re.compile(r"\bSCRIPT\b", re.IGNORECASE),
)


def subquery_depth(query: str) -> int:
    """Deepest nesting of ``(SELECT`` groups; other parentheses do not count."""
    depth = 0
    max_depth = 0
    for i, char in enumerate(query):
        if char == "(":
            if SELECT_LOOKAHEAD.match(query, i + 1):
                depth += 1
                max_depth = max(max_depth, depth)
        elif char == ")" and depth > 0:
            depth -= 1
    return max_depth


def count_statements(query: str) -> int:
    return len([part for part in query.split(";") if part.strip()])


def _missing_comma(query: str) -> bool:
    select_list = split_clauses(query).select_list
    if not select_list:
        return False
    fields = select_list.strip()
    return (bool(TWO_WORDS.search(fields)) and "," not in fields and fields != "*"
            and not FUNCTION_CALL.search(fields))


def _has_where(query: str) -> bool:
    return bool(WHERE_KEYWORD.search(query))


def _unbalanced_parens(query: str) -> bool:
    return query.count("(") != query.count(")")


SECURITY_RULES: List[Rule] = [
    ("UNION statement detected", lambda q: bool(UNION_KEYWORD.search(q))),
    ("Multiple statements detected", lambda q: count_statements(q) > 1),
    ("Dangerous function detected", lambda q: bool(DANGEROUS_FUNCTION_CALL.search(q))),
    ("Excessive subquery nesting", lambda q: subquery_depth(q) > MAX_SUBQUERY_DEPTH),
]

SYNTAX_RULES: List[Rule] = [
    ("Invalid SELECT statement", lambda q: not q.strip().upper().startswith("SELECT")),
    ("Missing FROM clause", lambda q: not FROM_KEYWORD.search(q)),
    ("Invalid field list syntax", lambda q: ",," in q or bool(COMMA_BEFORE_FROM.search(q))),
    ("Unmatched parentheses", _unbalanced_parens),
    ("Incomplete WHERE clause", lambda q: _has_where(q) and bool(WHERE_AT_END.search(q.strip()))),
    ("WHERE clause missing conditions",
     lambda q: _has_where(q) and bool(WHERE_WITHOUT_CONDITIONS.search(q))),
    ("Incomplete ORDER BY clause", lambda q: bool(ORDER_BY_AT_END.search(q.strip()))),
]

# explain_query_plan validates with its own table: the same checks plus the
# missing comma heuristic. The two tables are candidates for consolidation.
EXPLAIN_SYNTAX_RULES: List[Rule] = (
    SYNTAX_RULES[:3]
    + [("Missing comma between field names", _missing_comma)]
    + SYNTAX_RULES[3:]
)


def apply_rules(rules: Sequence[Rule], query: str) -> List[str]:
    return [label for label, predicate in rules if predicate(query)]


def detect_query_type(query: str) -> str:
    upper = query.strip().upper()
    for query_type in ("SELECT", "UPDATE", "DELETE", "INSERT"):
        if upper.startswith(query_type):
            return query_type
    return "UNKNOWN"


def detect_security_issues(query: str) -> List[str]:
    return apply_rules(SECURITY_RULES, query)


def detect_syntax_errors(query: str) -> List[str]:
    return apply_rules(SYNTAX_RULES, query)


def validate_for_explain(query: str) -> Tuple[bool, List[str]]:
    errors = apply_rules(EXPLAIN_SYNTAX_RULES, query)
    return not errors, errors


def contains_dangerous_patterns(text: str) -> bool:
    return any(pattern.search(text) for pattern in DANGEROUS_PATTERNS)


def detect_sosl_injection(search_term: str) -> bool:
    return any(pattern.search(search_term) for pattern in SOSL_INJECTION_PATTERNS)


class QueryValidator:
    # Keywords that turn a read into a write
    FORBIDDEN_OPERATIONS = [
        'INSERT', 'UPDATE', 'DELETE', 'UPSERT', 'MERGE', 'UNDELETE',
        'CREATE', 'MODIFY', 'TRUNCATE', 'DROP', 'ALTER'
    ]

    OUTFILE = re.compile(r"\bSELECT.*INTO\s+OUTFILE", re.IGNORECASE | re.DOTALL)

    @staticmethod
    def validate_query(soql: str) -> Tuple[bool, Optional[str]]:
        """
        Validate a SOQL query before it is executed.
        Returns (is_valid, error_message)
        """
        soql_upper = soql.upper().strip()

        if not soql_upper.startswith('SELECT'):
            return False, "Invalid SOQL query syntax: Query must start with SELECT"

        if not FROM_KEYWORD.search(soql):
            return False, "Invalid SOQL query syntax: Query must include FROM clause"

        # String literals may legitimately contain these words
        visible = mask_string_literals(soql).upper()
        for operation in QueryValidator.FORBIDDEN_OPERATIONS:
            if re.search(rf'\b{operation}\b', visible):
                return False, f"{operation} operations are not permitted. Only SELECT queries are allowed."

        if contains_dangerous_patterns(soql) or QueryValidator.OUTFILE.search(soql):
            return False, "SOQL query contains potentially unsafe content"

        if count_statements(soql) > 1:
            return False, "Multiple SQL statements are not allowed"

        return True, None
