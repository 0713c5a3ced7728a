"""Filter expressions for category and row-level security constraints.

Security tags are stored flattened as "attribute:value" strings in the
securityFilters collection. A query passes a map of attribute -> value(s);
a document matches when, for every attribute in that map, it carries at
least one of the requested values (OR within an attribute, AND across
attributes).

Filters are assembled as a small expression tree and rendered in one place.
Every literal goes through escape_literal() on its way into the string.
"""

from typing import Any, Literal, Union

from pydantic import BaseModel

from shared.helper.HelperConfig import HelperConfig

CATEGORY_FIELD = "category"
SECURITY_FIELD = "securityFilters"
TAG_SEPARATOR = ":"


def escape_literal(value: str | None) -> str:
    """Escape a value for use inside a single-quoted filter literal.

    Args:
        value (str | None): Raw user-supplied value.

    Returns:
        str: The value with every single quote doubled; "" for None.
    """
    if not value:
        return ""
    return value.replace("'", "''")


def make_security_tag(attribute: str, value: str) -> str:
    return f"{attribute}{TAG_SEPARATOR}{value}"


##########################################
############# CLAUSE MODEL ###############
##########################################

class SingleValueClause(BaseModel):
    """The document must carry attribute:value."""

    kind: Literal["single"] = "single"
    attribute: str
    value: str

    def get_tags(self) -> list[str]:
        return [make_security_tag(self.attribute, self.value)]


class MultiValueClause(BaseModel):
    """The document must carry attribute:v for at least one v in values."""

    kind: Literal["multi"] = "multi"
    attribute: str
    values: list[str]

    def get_tags(self) -> list[str]:
        return [make_security_tag(self.attribute, v) for v in self.values]


SecurityFilterClause = Union[SingleValueClause, MultiValueClause]


def resolve_security_clauses(security_filters: dict[str, Any] | None) -> list[SecurityFilterClause]:
    """Turn the loose attribute -> value(s) map into typed clauses.

    Strings become single-value clauses, lists and tuples become multi-value
    clauses. Other scalars (numbers, booleans) are converted with str().
    None values and empty lists carry no constraint and are dropped.

    Args:
        security_filters (dict[str, Any] | None): Map as received at the API boundary.

    Returns:
        list[SecurityFilterClause]: One clause per constrained attribute, in input order.
    """
    clauses: list[SecurityFilterClause] = []
    for attribute, raw in (security_filters or {}).items():
        if raw is None:
            continue
        if isinstance(raw, str):
            clauses.append(SingleValueClause(attribute=attribute, value=raw))
        elif isinstance(raw, (list, tuple, set)):
            values = [str(v) for v in raw if v is not None]
            if values:
                clauses.append(MultiValueClause(attribute=attribute, values=values))
        elif isinstance(raw, bool):
            # str(True) would give "True"; keep the JSON spelling
            clauses.append(SingleValueClause(attribute=attribute, value="true" if raw else "false"))
        else:
            clauses.append(SingleValueClause(attribute=attribute, value=str(raw)))
    return clauses


##########################################
########### EXPRESSION TREE ##############
##########################################

class Equals(BaseModel):
    """field eq 'literal'"""

    field: str
    literal: str

    def render(self) -> str:
        return f"{self.field} eq '{escape_literal(self.literal)}'"


class CollectionContains(BaseModel):
    """collection/any(x: x eq 'literal')"""

    collection: str
    literal: str

    def render(self) -> str:
        return f"{self.collection}/any(sf: sf eq '{escape_literal(self.literal)}')"


class AnyOf(BaseModel):
    """Disjunction, parenthesised."""

    items: list["FilterExpression"]

    def render(self) -> str:
        return "(" + " or ".join(item.render() for item in self.items) + ")"


class AllOf(BaseModel):
    """Conjunction. Parenthesised unless it is the outermost expression."""

    items: list["FilterExpression"]
    grouped: bool = True

    def render(self) -> str:
        joined = " and ".join(item.render() for item in self.items)
        return f"({joined})" if self.grouped else joined


FilterExpression = Union[Equals, CollectionContains, AnyOf, AllOf]

AnyOf.model_rebuild()
AllOf.model_rebuild()


class SecurityFilterBuilder:
    """Builds the filter expression applied to every hybrid query."""

    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()

    def build_category_expression(self, categories: list[str] | None) -> AnyOf | None:
        if not categories:
            return None
        return AnyOf(items=[Equals(field=CATEGORY_FIELD, literal=c) for c in categories])

    def build_clause_expression(self, clause: SecurityFilterClause) -> CollectionContains | AnyOf:
        if isinstance(clause, SingleValueClause):
            return CollectionContains(collection=SECURITY_FIELD, literal=clause.get_tags()[0])
        return AnyOf(items=[CollectionContains(collection=SECURITY_FIELD, literal=tag) for tag in clause.get_tags()])

    def build_security_expression(self, clauses: list[SecurityFilterClause]) -> AllOf | None:
        if not clauses:
            return None
        return AllOf(items=[self.build_clause_expression(clause) for clause in clauses])

    def build_expression(
        self,
        categories: list[str] | None = None,
        security_filters: dict[str, Any] | None = None,
    ) -> AllOf | None:
        """Combine category and security constraints into one expression tree.

        Returns:
            AllOf | None: The top-level conjunction, or None when nothing is constrained.
        """
        parts = [
            expr for expr in (
                self.build_category_expression(categories),
                self.build_security_expression(resolve_security_clauses(security_filters)),
            )
            if expr is not None
        ]
        if not parts:
            return None
        return AllOf(items=parts, grouped=False)

    def build_filter(
        self,
        categories: list[str] | None = None,
        security_filters: dict[str, Any] | None = None,
    ) -> str | None:
        """Render the filter for a query.

        Examples:
            categories=["a", "b"]          -> "(category eq 'a' or category eq 'b')"
            security_filters={"dept": "x"} -> "(securityFilters/any(sf: sf eq 'dept:x'))"

        Args:
            categories (list[str] | None): Allowed categories; any one must match.
            security_filters (dict[str, Any] | None): Attribute -> value(s) constraints.

        Returns:
            str | None: The filter string, or None for an unrestricted query. None
                means "no restriction": access control relies on callers passing the
                user's security filters.
        """
        expression = self.build_expression(categories, security_filters)
        if expression is None:
            return None
        rendered = expression.render()
        self.logging.debug("Built filter expression: %s", rendered)
        return rendered
