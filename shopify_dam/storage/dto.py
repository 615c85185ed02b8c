# storage/dto.py
from datetime import datetime, timezone
import secrets
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ROOT_FOLDER_ID = "root"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return "dam_" + secrets.token_hex(8)


class Record(BaseModel):
    """
    Common base for catalog records. Fields are snake_case in Python and
    camelCase on the wire.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Folder(Record):
    """A node of the folder tree. Only the root has no parent."""

    id: str = Field(default_factory=generate_id)
    name: str
    parent_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    created_by: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None


class FileRecord(Record):
    """
    Metadata of one published asset. The binary itself lives on the
    content host, referenced by `external_asset_id` and `url`.
    """

    id: str = Field(default_factory=generate_id)
    name: str
    original_name: Optional[str] = None
    mime_type: str
    size: int = 0
    category: str = "other"
    folder_id: str
    external_asset_id: Optional[str] = None
    url: Optional[str] = None
    preview_url: Optional[str] = None
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    downloads: int = 0
    last_downloaded: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    created_by: Optional[str] = None


class Catalog(Record):
    """The complete folder/file catalog, persisted as a single document."""

    version: int = 0
    folders: Dict[str, Folder] = Field(default_factory=dict)
    files: Dict[str, FileRecord] = Field(default_factory=dict)

    @classmethod
    def new(cls, root_name: str) -> "Catalog":
        root = Folder(id=ROOT_FOLDER_ID, name=root_name, created_by="system")
        return cls(folders={root.id: root})


class Breadcrumb(Record):
    id: str
    name: str


class StagedTarget(BaseModel):
    """A one-time upload destination handed out by the content host."""

    upload_url: str
    resource_url: str
    parameters: List[Dict[str, str]] = Field(default_factory=list)


class StagedAsset(BaseModel):
    """A durable asset registered on the content host."""

    external_asset_id: str
    url: Optional[str] = None
    preview_url: Optional[str] = None
