from abc import abstractmethod
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.clients.search.models.IndexDescriptor import IndexDescriptor
from shared.clients.search.models.QueryResult import QueryResult
from shared.clients.search.models.SearchQuery import SearchQuery
from shared.clients.search.models.UploadResult import UploadResult
from shared.models.errors import BackendUnavailableError

from shared.helper.HelperConfig import HelperConfig


class SearchClientInterface(ClientInterface):
    """Search engine backend holding the knowledge indexes.

    Implementations only translate between engine-neutral models and the
    engine's REST dialect. They keep no per-request state, so one booted
    client serves all concurrent requests.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @abstractmethod
    def is_already_exists_status(self, status_code: int) -> bool:
        """
        Tells whether a failed create-index status means the index is already there.

        Args:
            status_code (int): HTTP status returned by the create request.

        Returns:
            bool: True if the status signals an existing index.
        """
        pass

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "search"
        """
        return "search"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_index(self, index_name: str) -> str:
        """
        Returns the endpoint path of a single index definition.

        Args:
            index_name (str): The index name.

        Returns:
            str: The endpoint path (e.g. "/indexes/knowledge")
        """
        pass

    @abstractmethod
    def _get_endpoint_upload(self, index_name: str) -> str:
        """
        Returns the endpoint path for document upload batches.

        Args:
            index_name (str): The index name.

        Returns:
            str: The endpoint path (e.g. "/indexes/knowledge/docs/index")
        """
        pass

    @abstractmethod
    def _get_endpoint_query(self, index_name: str) -> str:
        """
        Returns the endpoint path for search requests.

        Args:
            index_name (str): The index name.

        Returns:
            str: The endpoint path (e.g. "/indexes/knowledge/docs/search")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_create_index_payload(self, descriptor: IndexDescriptor) -> dict:
        """
        Renders an index descriptor into the engine's index definition body.
        """
        pass

    @abstractmethod
    def get_create_index_headers(self) -> dict:
        """
        Returns the headers that make index creation conditional on the index being absent.
        """
        pass

    @abstractmethod
    def get_upload_payload(self, documents: list[dict[str, Any]]) -> dict:
        """
        Wraps encoded documents into an upload batch body.
        """
        pass

    @abstractmethod
    def get_query_payload(self, query: SearchQuery) -> dict:
        """
        Renders a hybrid query into the engine's search request body.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_upload_results(self, raw_response: dict) -> list[UploadResult]:
        """
        Extracts the per-document outcomes from an upload response.
        """
        pass

    @abstractmethod
    def extract_query_result(self, raw_response: dict) -> QueryResult:
        """
        Extracts hits and total count from a search response.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_index_exists(self, index_name: str) -> bool:
        """Check if an index exists in the search backend.

        A 404 is the only answer treated as "absent".

        Args:
            index_name (str): The index name.

        Returns:
            bool: True if the index exists, False on 404.

        Raises:
            BackendUnavailableError: On any other error status or a transport failure.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_index(index_name))
        if resp.status_code == 404:
            return False
        if resp.status_code >= 300:
            raise BackendUnavailableError(
                f"Existence check for index '{index_name}' failed with status {resp.status_code}: {self.extract_error_message(resp)}",
                status_code=resp.status_code,
            )
        return True

    async def do_create_index(self, descriptor: IndexDescriptor) -> bool:
        """Create an index unless it already exists.

        Args:
            descriptor (IndexDescriptor): The full index definition.

        Returns:
            bool: True if this call created the index, False if it already existed.

        Raises:
            BackendUnavailableError: If the backend rejects the definition or is unreachable.
        """
        resp = await self.do_request(
            method="PUT",
            json=self.get_create_index_payload(descriptor),
            endpoint=self._get_endpoint_index(descriptor.name),
            additional_headers=self.get_create_index_headers(),
        )
        if self.is_already_exists_status(resp.status_code):
            self.logging.info("Index '%s' was created concurrently, nothing to do.", descriptor.name)
            return False
        if resp.status_code >= 300:
            raise BackendUnavailableError(
                f"Creating index '{descriptor.name}' failed with status {resp.status_code}: {self.extract_error_message(resp)}",
                status_code=resp.status_code,
                context={"response": resp.text[:1000]},
            )
        return True

    async def do_upload_documents(self, index_name: str, documents: list[dict[str, Any]]) -> list[UploadResult]:
        """Upload a batch of encoded documents.

        The call succeeding does not mean every document was stored; callers
        check the returned per-document results.

        Args:
            index_name (str): The target index.
            documents (list[dict[str, Any]]): Encoded field maps.

        Returns:
            list[UploadResult]: One outcome per document.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_upload_payload(documents),
            endpoint=self._get_endpoint_upload(index_name),
            raise_on_error=True,
        )
        return self.extract_upload_results(resp.json())

    async def do_query(self, index_name: str, query: SearchQuery) -> QueryResult:
        """Run one hybrid query against an index.

        Args:
            index_name (str): The index to query.
            query (SearchQuery): Lexical text, optional vector part, filter and projection.

        Returns:
            QueryResult: Ranked raw hits and the total count.
        """
        resp = await self.do_request(
            method="POST",
            json=self.get_query_payload(query),
            endpoint=self._get_endpoint_query(index_name),
            raise_on_error=True,
        )
        return self.extract_query_result(resp.json())
