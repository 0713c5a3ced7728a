from pydantic import BaseModel


class UploadResult(BaseModel):
    """Per-document outcome of an upload batch.

    Attributes:
        key:           Key of the document the outcome belongs to.
        succeeded:     True if the backend stored the document.
        error_message: Backend reason when succeeded is False.
        status_code:   Per-document status code reported by the backend.
    """

    key: str
    succeeded: bool
    error_message: str | None = None
    status_code: int | None = None
