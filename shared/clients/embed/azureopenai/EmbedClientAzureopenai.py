from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.errors import EmbeddingFailureError


class EmbedClientAzureopenai(EmbedClientInterface):
    """Embedding client for an Azure OpenAI embedding deployment."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._deployment = self.get_config_val("DEPLOYMENT", default="text-embedding-ada-002", val_type="string")
        self._api_version = self.get_config_val("API_VERSION", default="2024-02-01", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Azureopenai"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="DEPLOYMENT", val_type="string", default="text-embedding-ada-002"),
            EnvConfig(env_key="API_VERSION", val_type="string", default="2024-02-01"),
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
        return f"/openai/deployments/{self._deployment}"

    def get_endpoint_embedding(self) -> str:
        return f"/openai/deployments/{self._deployment}/embeddings"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        # the deployment selects the model; "model" is ignored by Azure
        return {"input": texts}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        data = response_data.get("data")
        if not data:
            raise EmbeddingFailureError("No embeddings returned from Azure OpenAI")
        ordered = sorted(data, key=lambda item: item.get("index", 0))
        embeddings = [item.get("embedding") for item in ordered]
        if any(not vector for vector in embeddings):
            raise EmbeddingFailureError("Azure OpenAI returned an empty embedding vector")
        return embeddings
