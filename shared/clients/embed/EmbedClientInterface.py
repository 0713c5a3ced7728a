from abc import abstractmethod
import re

from shared.clients.ClientInterface import ClientInterface
from shared.models.errors import BackendUnavailableError, EmbeddingFailureError

from shared.helper.HelperConfig import HelperConfig

DEFAULT_MAX_CHARS = 30000

_WHITESPACE_RUN = re.compile(r"\s+")


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default="")
        self.embed_model_max_chars = int(helper_config.get_number_val(f"{self.get_client_type().upper()}_MODEL_MAX_CHARS", default=DEFAULT_MAX_CHARS))

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/api/embed")

        Raises:
            NotImplementedError: If the method is not implemented in a subclass.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The cleaned texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Response format differs by backend:
        - Ollama /api/embed: {"embeddings": [[...], [...]]}  (already ordered)
        - OpenAI-compatible: {"data": [{"embedding": [...], "index": 0}]} (needs sorting)

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            EmbeddingFailureError: If the response holds no usable embeddings.
        """
        pass

    def clean_text(self, text: str | None) -> str:
        """Normalise text before it is sent to the embedding model.

        Trims, collapses every whitespace run to one space and truncates to
        the configured maximum length.

        Args:
            text (str | None): Raw text.

        Returns:
            str: The cleaned text, possibly empty.
        """
        if not text or not text.strip():
            return ""
        cleaned = _WHITESPACE_RUN.sub(" ", text.strip())
        if len(cleaned) > self.embed_model_max_chars:
            self.logging.warning(
                "Text truncated from %d to %d characters before embedding",
                len(cleaned), self.embed_model_max_chars,
            )
            cleaned = cleaned[:self.embed_model_max_chars]
        return cleaned

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send an embedding request and return the extracted vectors.

        The texts are sent as given; callers clean them first.

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            BackendUnavailableError: If the backend cannot be reached or answers with an error status.
            EmbeddingFailureError: If the response does not contain one vector per input.
        """
        texts = [texts] if isinstance(texts, str) else texts
        body = self.get_embed_payload(texts)
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        if response.status_code != 200:
            self.logging.error(
                "Embedding request failed: status %d, body: %s",
                response.status_code,
                response.text[:200],
            )
            raise BackendUnavailableError(
                f"Embedding request to {self.get_engine_name()} failed with status {response.status_code}: {self.extract_error_message(response)}",
                status_code=response.status_code,
            )
        embeddings = self.extract_embeddings_from_response(response.json())
        if len(embeddings) != len(texts):
            raise EmbeddingFailureError(
                f"Expected {len(texts)} embeddings from {self.get_engine_name()}, got {len(embeddings)}."
            )
        return embeddings

    async def do_get_embedding(self, text: str) -> list[float]:
        """Clean a single text and return its embedding vector.

        Args:
            text (str): The raw text.

        Returns:
            list[float]: The embedding vector.

        Raises:
            EmbeddingFailureError: If the cleaned text is empty or no vector comes back.
            BackendUnavailableError: If the backend call fails.
        """
        cleaned = self.clean_text(text)
        if not cleaned:
            raise EmbeddingFailureError("Cannot generate an embedding for empty text.")
        self.logging.debug("Generating embedding for text of length %d", len(cleaned))
        vector = (await self.do_embed([cleaned]))[0]
        self.logging.debug("Generated embedding with %d dimensions", len(vector))
        return vector
