from typing import Any

from shared.clients.search.SearchClientInterface import SearchClientInterface
from shared.clients.search.models.IndexDescriptor import IndexDescriptor, IndexField
from shared.clients.search.models.QueryResult import QueryHit, QueryResult
from shared.clients.search.models.SearchQuery import SearchQuery
from shared.clients.search.models.UploadResult import UploadResult
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class SearchClientAzuresearch(SearchClientInterface):
    """Azure AI Search over its REST API."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._api_version = self.get_config_val("API_VERSION", default="2024-07-01", val_type="string")

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def is_already_exists_status(self, status_code: int) -> bool:
        # 412 answers "If-None-Match: *", 409 a plain create racing another one
        return status_code in (409, 412)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Azuresearch"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="API_VERSION", val_type="string", default="2024-07-01"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"api-key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_default_params(self) -> dict:
        return {"api-version": self._api_version}

    def _get_endpoint_healthcheck(self) -> str:
        return "/servicestats"

    def _get_endpoint_index(self, index_name: str) -> str:
        return f"/indexes/{index_name}"

    def _get_endpoint_upload(self, index_name: str) -> str:
        return f"/indexes/{index_name}/docs/index"

    def _get_endpoint_query(self, index_name: str) -> str:
        return f"/indexes/{index_name}/docs/search"

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    def _render_field(self, field: IndexField) -> dict:
        # every flag is sent explicitly, Azure defaults string fields to searchable
        rendered = {
            "name": field.name,
            "type": field.type,
            "key": field.key,
            "searchable": field.searchable,
            "filterable": field.filterable,
            "sortable": field.sortable,
            "facetable": field.facetable,
            "retrievable": field.retrievable,
        }
        if field.is_vector():
            rendered["dimensions"] = field.dimensions
            rendered["vectorSearchProfile"] = field.vector_profile
        return rendered

    def get_create_index_payload(self, descriptor: IndexDescriptor) -> dict:
        return {
            "name": descriptor.name,
            "fields": [self._render_field(field) for field in descriptor.fields],
            "vectorSearch": {
                "algorithms": [
                    {"name": descriptor.vector_algorithm, "kind": "hnsw"},
                ],
                "profiles": [
                    {"name": descriptor.vector_profile, "algorithm": descriptor.vector_algorithm},
                ],
            },
        }

    def get_create_index_headers(self) -> dict:
        return {"If-None-Match": "*"}

    def get_upload_payload(self, documents: list[dict[str, Any]]) -> dict:
        return {"value": [{"@search.action": "upload", **doc} for doc in documents]}

    def get_query_payload(self, query: SearchQuery) -> dict:
        payload: dict[str, Any] = {
            "search": query.search_text,
            "queryType": "full",
            "top": query.top,
            "count": query.include_total_count,
        }
        if query.select:
            payload["select"] = ",".join(query.select)
        if query.filter:
            payload["filter"] = query.filter
        if query.vector_query is not None:
            payload["vectorQueries"] = [
                {
                    "kind": "vector",
                    "vector": query.vector_query.vector,
                    "k": query.vector_query.k,
                    "fields": query.vector_query.field,
                }
            ]
        return payload

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_upload_results(self, raw_response: dict) -> list[UploadResult]:
        return [
            UploadResult(
                key=str(item.get("key", "")),
                succeeded=bool(item.get("status", False)),
                error_message=item.get("errorMessage"),
                status_code=item.get("statusCode"),
            )
            for item in raw_response.get("value", [])
        ]

    def extract_query_result(self, raw_response: dict) -> QueryResult:
        hits = []
        for item in raw_response.get("value", []):
            document = {k: v for k, v in item.items() if not k.startswith("@search.")}
            hits.append(QueryHit(score=item.get("@search.score") or 0.0, document=document))
        return QueryResult(hits=hits, total_count=raw_response.get("@odata.count"))
