from pydantic import BaseModel


class VectorQuery(BaseModel):
    """Nearest-neighbour part of a hybrid query.

    Attributes:
        vector: Query embedding.
        k:      Number of neighbour candidates handed to rank fusion.
        field:  Vector field to search.
    """

    vector: list[float]
    k: int
    field: str


class SearchQuery(BaseModel):
    """One combined lexical + vector request against an index.

    Attributes:
        search_text:        Lexical query string; "*" matches everything.
        vector_query:       Optional vector part. None sends a purely lexical query.
        filter:             Filter expression, or None for no restriction.
        select:             Fields to return in each hit.
        top:                Page size.
        include_total_count: Ask the backend for the total number of matches.
    """

    search_text: str = "*"
    vector_query: VectorQuery | None = None
    filter: str | None = None
    select: list[str] = []
    top: int = 5
    include_total_count: bool = True
