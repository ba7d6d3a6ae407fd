"""Request contract between the engine and its callers.

Every request is a small pydantic model tagged by ``type``; `Request` is the
closed union of all of them. Field names follow the camelCase wire format
the badge / popup collaborators already speak.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _Request(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CheckQuota(_Request):
    type: Literal["CHECK_QUOTA"] = "CHECK_QUOTA"


class IncrementQuota(_Request):
    type: Literal["INCREMENT_QUOTA"] = "INCREMENT_QUOTA"


class GetCache(_Request):
    type: Literal["GET_CACHE"] = "GET_CACHE"
    url: str


class CacheEntryIn(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    published: Optional[str] = None
    modified: Optional[str] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    source: str = "none"
    negative_ttl: Optional[int] = Field(None, alias="negativeTTL", ge=0)


class SetCache(_Request):
    type: Literal["SET_CACHE"] = "SET_CACHE"
    url: str
    entry: CacheEntryIn


class FetchDateFromUrl(_Request):
    type: Literal["FETCH_DATE_FROM_URL"] = "FETCH_DATE_FROM_URL"
    url: str


class GetLicense(_Request):
    type: Literal["GET_LICENSE"] = "GET_LICENSE"


class SetLicense(_Request):
    type: Literal["SET_LICENSE"] = "SET_LICENSE"
    is_paid: bool = Field(True, alias="isPaid")
    purchase_date: Optional[str] = Field(None, alias="purchaseDate")
    email: Optional[str] = None


class VerifyLicense(_Request):
    type: Literal["VERIFY_LICENSE"] = "VERIFY_LICENSE"
    email: str


class GetPreferences(_Request):
    type: Literal["GET_PREFERENCES"] = "GET_PREFERENCES"


class SetPreferences(_Request):
    type: Literal["SET_PREFERENCES"] = "SET_PREFERENCES"
    prefs: Dict[str, Any] = Field(default_factory=dict)


class ToggleEnabled(_Request):
    type: Literal["TOGGLE_ENABLED"] = "TOGGLE_ENABLED"
    enabled: bool


class GetHttpDate(_Request):
    type: Literal["GET_HTTP_DATE"] = "GET_HTTP_DATE"
    url: str


class RecordHttpDate(_Request):
    type: Literal["RECORD_HTTP_DATE"] = "RECORD_HTTP_DATE"
    url: str
    date: str


class AnalyzePage(_Request):
    """Run the full pipeline over a page the caller already has."""

    type: Literal["ANALYZE_PAGE"] = "ANALYZE_PAGE"
    url: str = ""
    html: str
    last_modified: Optional[str] = Field(None, alias="lastModified")
    use_cache: bool = Field(True, alias="useCache")


class AnalyzeSnippet(_Request):
    type: Literal["ANALYZE_SNIPPET"] = "ANALYZE_SNIPPET"
    text: str
    url: Optional[str] = None


Request = Annotated[
    Union[
        CheckQuota,
        IncrementQuota,
        GetCache,
        SetCache,
        FetchDateFromUrl,
        GetLicense,
        SetLicense,
        VerifyLicense,
        GetPreferences,
        SetPreferences,
        ToggleEnabled,
        GetHttpDate,
        RecordHttpDate,
        AnalyzePage,
        AnalyzeSnippet,
    ],
    Field(discriminator="type"),
]

REQUEST_TYPES: List[Type[_Request]] = [
    CheckQuota,
    IncrementQuota,
    GetCache,
    SetCache,
    FetchDateFromUrl,
    GetLicense,
    SetLicense,
    VerifyLicense,
    GetPreferences,
    SetPreferences,
    ToggleEnabled,
    GetHttpDate,
    RecordHttpDate,
    AnalyzePage,
    AnalyzeSnippet,
]

_adapter: TypeAdapter = TypeAdapter(Request)


def parse_request(data: Union[Dict[str, Any], _Request]) -> _Request:
    """Validate a raw dict into its request model (raises pydantic.ValidationError)."""
    if isinstance(data, _Request):
        return data
    return _adapter.validate_python(data)
