"""
Other Sources
=============
Tagged variants of supplementary trial sources (pipeline data, press
releases, publications, registries, associated studies).

Variants are typed in memory and serialized to JSON only when written to
the ``data`` column. Anything that does not parse as a known variant reads
back as ``LegacySource`` with the stored text preserved.
"""

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, ValidationInfo, field_validator

from ..database.enums import SourceCategory
from .coercion import to_string


class _SourceBase(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _scalar_to_text(cls, value: Any, info: ValidationInfo) -> Any:
        # Form inputs may send numbers or booleans for text fields
        if info.field_name == "file" or value is None or isinstance(value, (str, dict, list)):
            return value
        return to_string(value)

    @classmethod
    def category(cls) -> str:
        return cls.model_fields["type"].default

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "_SourceBase":
        """Build from one entry of a form category list."""
        payload = {k: v for k, v in item.items() if k != "type"}
        payload["type"] = cls.category()
        return cls.model_validate(payload)


class PipelineDataSource(_SourceBase):
    type: Literal["pipeline_data"] = "pipeline_data"
    date: Optional[str] = None
    information: Optional[str] = None
    url: Optional[str] = None
    file: Optional[Any] = None


class PressReleaseSource(_SourceBase):
    type: Literal["press_releases"] = "press_releases"
    date: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    file: Optional[Any] = None


class PublicationSource(_SourceBase):
    type: Literal["publications"] = "publications"
    publication_type: Optional[str] = Field(None, alias="publicationType")
    title: Optional[str] = None
    url: Optional[str] = None
    file: Optional[Any] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "PublicationSource":
        # Form entries carry the publication kind in their own "type" key
        source = super().from_item(item)
        if source.publication_type is None and item.get("type") is not None:
            source.publication_type = str(item["type"])
        return source


class TrialRegistrySource(_SourceBase):
    type: Literal["trial_registries"] = "trial_registries"
    registry: Optional[str] = None
    identifier: Optional[str] = None
    url: Optional[str] = None
    file: Optional[Any] = None


class AssociatedStudySource(_SourceBase):
    type: Literal["associated_studies"] = "associated_studies"
    study_type: Optional[str] = Field(None, alias="studyType")
    title: Optional[str] = None
    url: Optional[str] = None
    file: Optional[Any] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "AssociatedStudySource":
        source = super().from_item(item)
        if source.study_type is None and item.get("type") is not None:
            source.study_type = str(item["type"])
        return source


class LegacySource(_SourceBase):
    type: Literal["legacy"] = "legacy"
    raw: str = ""


OtherSourceItem = Annotated[
    Union[
        PipelineDataSource,
        PressReleaseSource,
        PublicationSource,
        TrialRegistrySource,
        AssociatedStudySource,
        LegacySource,
    ],
    Field(discriminator="type"),
]

_ITEM_ADAPTER = TypeAdapter(OtherSourceItem)

# Form category key -> variant, in storage order
CATEGORY_VARIANTS = {
    SourceCategory.PIPELINE_DATA.value: PipelineDataSource,
    SourceCategory.PRESS_RELEASES.value: PressReleaseSource,
    SourceCategory.PUBLICATIONS.value: PublicationSource,
    SourceCategory.TRIAL_REGISTRIES.value: TrialRegistrySource,
    SourceCategory.ASSOCIATED_STUDIES.value: AssociatedStudySource,
}


def is_categorized(payload: Any) -> bool:
    """True when the payload uses the multi-category shape."""
    if not isinstance(payload, dict):
        return False
    return any(isinstance(payload.get(category), list) for category in CATEGORY_VARIANTS)


def sources_from_categories(payload: Dict[str, Any]) -> List[OtherSourceItem]:
    """
    Expand a multi-category payload into one variant per list item.

    Categories whose value is not a list are ignored.
    """
    sources = []
    for category, variant in CATEGORY_VARIANTS.items():
        items = payload.get(category)
        if not isinstance(items, list):
            continue
        for item in items:
            if isinstance(item, dict):
                sources.append(variant.from_item(item))
    return sources


def legacy_from_flat(payload: Dict[str, Any]) -> LegacySource:
    """Wrap a flat, untyped object as a legacy source."""
    data = payload.get("data")
    if isinstance(data, str):
        return LegacySource(raw=data)
    body = {k: v for k, v in payload.items() if k not in ("id", "trial_id")}
    return LegacySource(raw=json.dumps(body, default=str))


def serialize(source: OtherSourceItem) -> str:
    """Text stored in the ``data`` column."""
    if isinstance(source, LegacySource):
        return source.raw
    return json.dumps(source.model_dump(by_alias=True, exclude_none=True))


def parse(data: Optional[str]) -> OtherSourceItem:
    """Read a stored ``data`` value back into its variant."""
    if data is None:
        return LegacySource(raw="")
    try:
        decoded = json.loads(data)
    except (TypeError, ValueError):
        return LegacySource(raw=data)

    if isinstance(decoded, dict) and decoded.get("type") in CATEGORY_VARIANTS:
        try:
            return _ITEM_ADAPTER.validate_python(decoded)
        except ValidationError:
            pass
    return LegacySource(raw=data)


def to_storage(value: Any) -> Optional[str]:
    """
    Normalize a client-supplied ``data`` value to stored text.

    Strings are stored verbatim; objects tagged with a known category are
    validated as that variant; any other object is kept as legacy JSON.
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, dict) and value.get("type") in CATEGORY_VARIANTS:
        return serialize(_ITEM_ADAPTER.validate_python(value))
    return json.dumps(value, default=str)
