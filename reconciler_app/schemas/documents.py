from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class PrimaryResourceRecord(BaseModel):
    """Read model of an ol_resource row, as seen by the reconciler"""
    id: int
    title: str
    resource_url: str
    short_url: Optional[str] = None
    active: bool = True
    primary: bool = True
    updated_at: datetime

    model_config = ConfigDict(frozen=True)


class LinkDocument(BaseModel):
    """
    Derived link document, keyed by short path.

    Stored with the field names the redirector reads (shortUrl, longUrl,
    createdAt, updatedAt). Note that shortUrl holds the short PATH (eg r42):
    links are relative to whatever base URL the redirector serves.
    """
    short_path: str = Field(..., alias="shortUrl")
    long_url: str = Field("", alias="longUrl")
    title: str = ""
    active: bool = False
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class ResourceDocument(BaseModel):
    """Minimal derived resource projection, used for active flag convergence"""
    id: int
    active: bool


class LinkUpdate(BaseModel):
    """
    Partial update of a link document.

    Enumerates exactly the fields the reconciler may change; anything else
    stored on the document is left alone by upserts. Fields left as None
    are not written.
    """
    long_url: Optional[str] = Field(None, alias="longUrl")
    title: Optional[str] = None
    active: Optional[bool] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def fields(self) -> Dict[str, Any]:
        """Stored field names -> values, only for fields being set"""
        return self.model_dump(by_alias=True, exclude_none=True)

    def is_empty(self) -> bool:
        return not self.fields()


class LinkLookup(BaseModel):
    """
    Result of looking up a link document by short path.

    found=False means no document exists yet; document is then an empty
    document carrying only the key, which the diff syncer treats as
    "needs creation". A stored document that happens to be empty still
    comes back with found=True.
    """
    found: bool
    document: LinkDocument

    @classmethod
    def hit(cls, document: LinkDocument) -> "LinkLookup":
        return cls(found=True, document=document)

    @classmethod
    def miss(cls, short_path: str) -> "LinkLookup":
        return cls(found=False, document=LinkDocument(short_path=short_path))
