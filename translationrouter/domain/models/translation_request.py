"""TranslationRequest data model."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TranslationRequest(BaseModel):
    """One logical translation request.

    Immutable value passed through the dispatch pipeline. The character
    count used for quota accounting is ``len(text)``.

    Example:
        ```python
        request = TranslationRequest(text="Hello, world", target_lang="de")
        assert request.length == 12
        assert request.target_lang == "DE"
        ```
    """

    text: str = Field(..., description="Text to translate")
    target_lang: str = Field(
        ...,
        description="Target language code (e.g. 'DE', 'EN-GB')",
        min_length=2,
        max_length=16,
    )
    source_lang: str | None = Field(
        default=None,
        description="Source language code, None lets the provider detect it",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("target_lang", "source_lang")
    @classmethod
    def normalize_language(cls, v: str | None) -> str | None:
        """Normalize language codes to stripped upper case."""
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("Language code cannot be empty")
        return v.upper()

    @property
    def length(self) -> int:
        """Characters this request consumes from a provider quota."""
        return len(self.text)

    def __repr__(self) -> str:
        """String representation that never dumps the full text."""
        return (
            f"TranslationRequest(length={self.length}, "
            f"source_lang={self.source_lang!r}, target_lang={self.target_lang!r})"
        )
