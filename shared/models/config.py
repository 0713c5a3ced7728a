from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client needs before it can boot.

    Attributes:
        env_key (str): Key of the setting without the client prefix (e.g. "BASE_URL" for "SEARCH_AZURESEARCH_BASE_URL").
        val_type (str): Expected value type. One of "string", "number", "bool", "list".
        default (str | int | float | bool | list | None): Fallback when unset. None marks the setting as required.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None
