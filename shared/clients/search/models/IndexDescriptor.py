"""Engine-neutral description of a search index schema."""

from pydantic import BaseModel


class IndexField(BaseModel):
    """One field of an index schema.

    Attributes:
        name:           Field name as stored in the index.
        type:           EDM type name (e.g. "Edm.String", "Collection(Edm.Single)").
        key:            True for the document key field.
        searchable:     Included in full-text (or, for vector fields, vector) search.
        filterable:     Usable in filter expressions.
        sortable:       Usable in orderby expressions.
        facetable:      Usable for facet counts.
        retrievable:    Returned in search results.
        dimensions:     Vector length; only set on vector fields.
        vector_profile: Name of the vector search profile; only set on vector fields.
    """

    name: str
    type: str
    key: bool = False
    searchable: bool = False
    filterable: bool = False
    sortable: bool = False
    facetable: bool = False
    retrievable: bool = True
    dimensions: int | None = None
    vector_profile: str | None = None

    def is_vector(self) -> bool:
        return self.dimensions is not None


class IndexDescriptor(BaseModel):
    """Full definition of an index: its fields and its vector search binding.

    Attributes:
        name:              Index name.
        fields:            Ordered field list.
        vector_profile:    Name of the single vector search profile.
        vector_algorithm:  Name of the approximate nearest-neighbour algorithm
                           configuration the profile is bound to.
        vector_dimensions: Size of every vector field in the index.
    """

    name: str
    fields: list[IndexField]
    vector_profile: str
    vector_algorithm: str
    vector_dimensions: int

    def get_field_names(self) -> list[str]:
        return [field.name for field in self.fields]
