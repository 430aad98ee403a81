"""Configuration schemas using Pydantic"""

from pydantic import BaseModel, ConfigDict, Field


class ProviderCredentials(BaseModel):
    """Credentials and transport settings for one provider"""

    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(default="", alias="apiKey")
    base_url: str | None = Field(default=None, alias="baseUrl")
    timeout: int | None = None  # milliseconds
    max_retries: int | None = Field(default=None, alias="maxRetries")
    custom_headers: dict[str, str] | None = Field(default=None, alias="customHeaders")

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


class MultiProviderConfig(BaseModel):
    """Persisted root document"""

    model_config = ConfigDict(populate_by_name=True)

    providers: dict[str, ProviderCredentials] = Field(default_factory=dict)
    default_provider: str | None = Field(default=None, alias="defaultProvider")
    default_model: str | None = Field(default=None, alias="defaultModel")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)
