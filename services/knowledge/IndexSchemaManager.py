"""Index schema lifecycle: every knowledge index is created on first use with one fixed schema."""

from shared.clients.search.SearchClientInterface import SearchClientInterface
from shared.clients.search.models.IndexDescriptor import IndexDescriptor, IndexField
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import BackendUnavailableError

FIELD_ID = "id"
FIELD_CONTENT = "content"
FIELD_TITLE = "title"
FIELD_CATEGORY = "category"
FIELD_CREATED_AT = "createdAt"
FIELD_UPDATED_AT = "updatedAt"
FIELD_SECURITY_FILTERS = "securityFilters"
FIELD_METADATA = "metadata"
FIELD_VECTOR = "text_vector"

DEFAULT_VECTOR_DIMENSIONS = 1536
DEFAULT_VECTOR_PROFILE = "default-vector-profile"
DEFAULT_VECTOR_ALGORITHM = "default-vector-algorithm"


class IndexSchemaManager:
    """Makes sure a named index exists before anything is written to or read from it."""

    def __init__(self, helper_config: HelperConfig, search_client: SearchClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._search = search_client
        self.vector_dimensions = helper_config.get_positive_int_val("SEARCH_VECTOR_DIMENSIONS", default=DEFAULT_VECTOR_DIMENSIONS)
        self.vector_profile = helper_config.get_string_val("SEARCH_VECTOR_PROFILE", default=DEFAULT_VECTOR_PROFILE)
        self.vector_algorithm = helper_config.get_string_val("SEARCH_VECTOR_ALGORITHM", default=DEFAULT_VECTOR_ALGORITHM)

    ##########################################
    ################ SCHEMA ##################
    ##########################################

    def build_fields(self) -> list[IndexField]:
        return [
            IndexField(name=FIELD_ID, type="Edm.String", key=True, filterable=True),
            IndexField(name=FIELD_CONTENT, type="Edm.String", searchable=True, filterable=True),
            IndexField(name=FIELD_TITLE, type="Edm.String", searchable=True, filterable=True, facetable=True),
            IndexField(name=FIELD_CATEGORY, type="Edm.String", searchable=True, filterable=True, facetable=True),
            IndexField(name=FIELD_CREATED_AT, type="Edm.DateTimeOffset", filterable=True, sortable=True),
            IndexField(name=FIELD_UPDATED_AT, type="Edm.DateTimeOffset", filterable=True, sortable=True),
            IndexField(name=FIELD_SECURITY_FILTERS, type="Collection(Edm.String)", filterable=True),
            IndexField(name=FIELD_METADATA, type="Edm.String", filterable=True),
            IndexField(
                name=FIELD_VECTOR,
                type="Collection(Edm.Single)",
                searchable=True,
                retrievable=False,
                dimensions=self.vector_dimensions,
                vector_profile=self.vector_profile,
            ),
        ]

    def build_descriptor(self, index_name: str) -> IndexDescriptor:
        """Build the full index definition for a name.

        Args:
            index_name (str): The index to describe.

        Returns:
            IndexDescriptor: Fields plus the HNSW profile/algorithm binding.
        """
        return IndexDescriptor(
            name=index_name,
            fields=self.build_fields(),
            vector_profile=self.vector_profile,
            vector_algorithm=self.vector_algorithm,
            vector_dimensions=self.vector_dimensions,
        )

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def ensure_index_exists(self, index_name: str) -> bool:
        """Create the index if the backend reports it as missing.

        Safe to call repeatedly and concurrently: an index created by a
        racing call in between the check and the create counts as success.

        Args:
            index_name (str): The index name.

        Returns:
            bool: True once the index is known to exist.

        Raises:
            BackendUnavailableError: If the check or the creation is rejected or the backend is unreachable.
            Exception: Any unexpected error, after logging it.
        """
        self.logging.info("Checking if index exists: %s", index_name)
        try:
            if await self._search.do_index_exists(index_name):
                self.logging.info("Index %s already exists", index_name)
                return True

            self.logging.info("Index %s does not exist. Creating it.", index_name)
            descriptor = self.build_descriptor(index_name)
            self.logging.debug(
                "Index definition for %s has %d fields and %d vector dimensions",
                index_name, len(descriptor.fields), self.vector_dimensions,
            )
            if await self._search.do_create_index(descriptor):
                self.logging.info("Successfully created index: %s", index_name)
            return True
        except BackendUnavailableError as e:
            self.logging.error(
                "Search backend rejected index setup for %s (status %s): %s",
                index_name, e.status_code, e.message,
            )
            raise
        except Exception as e:
            self.logging.error(
                "Unexpected %s while ensuring index %s: %s",
                type(e).__name__, index_name, e,
            )
            raise
