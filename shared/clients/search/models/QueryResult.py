from pydantic import BaseModel


class QueryHit(BaseModel):
    """A single raw hit: the backend score plus the selected document fields."""

    score: float
    document: dict


class QueryResult(BaseModel):
    """Raw output of a query.

    Attributes:
        hits:        Hits in ranking order.
        total_count: Total number of matches, or None if the backend did not report one.
    """

    hits: list[QueryHit] = []
    total_count: int | None = None
