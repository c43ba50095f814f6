"""
Typed request builders for the search backend.

Each executor builds one of these instead of a free-form parameter dict;
validation happens at construction.
"""

from typing import Iterable

from pydantic import BaseModel, Field, field_validator

EXCLUDED_FIELDS = "embedding,embedding_text"
MAX_PER_PAGE = 250


class TextSearchRequest(BaseModel):
    """Full-text search against one collection."""
    collection: str = Field(min_length=1)
    query: str = "*"
    query_fields: dict[str, int] = Field(min_length=1)  # field -> weight, in order
    filter_by: str | None = None
    sort_by: str | None = None
    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=24, ge=1, le=MAX_PER_PAGE)
    prefix: bool = True
    infix: str | None = None  # off | always | fallback
    num_typos: int | None = Field(default=None, ge=0, le=2)

    @field_validator("query_fields")
    @classmethod
    def _positive_weights(cls, value: dict[str, int]) -> dict[str, int]:
        for name, weight in value.items():
            if not name or weight <= 0:
                raise ValueError(f"invalid field weight {name!r}={weight}")
        return value

    @field_validator("infix")
    @classmethod
    def _known_infix(cls, value: str | None) -> str | None:
        if value is not None and value not in ("off", "always", "fallback"):
            raise ValueError(f"unknown infix mode {value!r}")
        return value

    @field_validator("query")
    @classmethod
    def _default_wildcard(cls, value: str) -> str:
        return value.strip() or "*"

    def to_params(self) -> dict[str, str | int]:
        """Convert to Typesense search parameters."""
        names = list(self.query_fields)
        params: dict[str, str | int] = {
            "q": self.query,
            "query_by": ",".join(names),
            "query_by_weights": ",".join(str(self.query_fields[n]) for n in names),
            "page": self.page,
            "per_page": self.per_page,
            "prefix": ",".join("true" if self.prefix else "false" for _ in names),
            "exclude_fields": EXCLUDED_FIELDS,
        }
        if self.filter_by:
            params["filter_by"] = self.filter_by
        if self.sort_by:
            params["sort_by"] = self.sort_by
        if self.infix:
            params["infix"] = ",".join(self.infix for _ in names)
        if self.num_typos is not None:
            params["num_typos"] = self.num_typos
        return params


class VectorSearchRequest(BaseModel):
    """Nearest-neighbour search on the embedding field."""
    collection: str = Field(min_length=1)
    embedding: list[float] = Field(min_length=1)
    k: int = Field(default=24, ge=1, le=MAX_PER_PAGE)
    filter_by: str | None = None
    vector_field: str = "embedding"

    def truncated(self, dims: int) -> "VectorSearchRequest":
        """Copy with the embedding cut to its first dims dimensions."""
        return self.model_copy(update={"embedding": self.embedding[:dims]})

    def vector_query(self) -> str:
        values = ",".join(repr(float(v)) for v in self.embedding)
        return f"{self.vector_field}:([{values}], k:{self.k})"

    def to_search(self) -> dict[str, str | int]:
        """Convert to one entry of a Typesense multi_search body."""
        search: dict[str, str | int] = {
            "collection": self.collection,
            "q": "*",
            "vector_query": self.vector_query(),
            "exclude_fields": EXCLUDED_FIELDS,
            "per_page": self.k,
        }
        if self.filter_by:
            search["filter_by"] = self.filter_by
        return search


# ============================================================================
# Filter expression helpers
# ============================================================================


def quote_filter_value(value: str) -> str:
    """Backtick-quote a value for a filter expression."""
    return "`" + value.replace("`", "") + "`"


def equals(field: str, value: str) -> str:
    return f"{field}:={quote_filter_value(value)}"


def any_of(predicates: Iterable[str | None]) -> str | None:
    """Join predicates with ||; empty input gives None."""
    parts = [p for p in predicates if p]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return " || ".join(parts)


def all_of(predicates: Iterable[str | None]) -> str | None:
    """Join predicates with &&, parenthesising each; empty input gives None."""
    parts = [p for p in predicates if p]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return " && ".join(f"({p})" for p in parts)
