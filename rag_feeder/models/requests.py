"""Tagged-union request variants accepted by :meth:`RagFeeder.dispatch`.

Every request carries an ``action`` literal.  :data:`RagRequest` is a
pydantic discriminated union on that field, so a JSON body such as
``{"action": "search", "query": "...", "tenant_id": "acme"}`` validates
straight into a :class:`SearchRequest` and an unknown action is rejected
before any handler runs.

Page images travel as base64 strings in JSON and are decoded by
``Base64Bytes`` during validation.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import AliasChoices, Base64Bytes, BaseModel, ConfigDict, Field

from rag_feeder.models.rag import ChatTurn, PageImage


class _RequestBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tenant_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("tenant_id", "company_id", "companyId"),
    )


class _FileMetadata(BaseModel):
    """Optional metadata describing the uploaded source file."""

    file_name: str | None = Field(default=None, validation_alias=AliasChoices("file_name", "fileName"))
    file_size: int | None = Field(default=None, ge=0, validation_alias=AliasChoices("file_size", "fileSize"))
    file_path: str | None = Field(default=None, validation_alias=AliasChoices("file_path", "filePath"))
    uploaded_by: str | None = Field(default=None, validation_alias=AliasChoices("uploaded_by", "uploadedBy"))


class TextIngestRequest(_RequestBase, _FileMetadata):
    action: Literal["process_text"] = "process_text"
    title: str
    description: str = ""
    document_type: str = Field(default="text", validation_alias=AliasChoices("document_type", "documentType"))
    content: str = ""
    tags: list[str] = Field(default_factory=list)


class VisionPage(BaseModel):
    """One page image as sent over the wire."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    image_data: Base64Bytes = Field(validation_alias=AliasChoices("image_data", "base64"))
    page_number: int | None = Field(default=None, ge=1, validation_alias=AliasChoices("page_number", "pageNumber"))

    def to_page_image(self) -> PageImage:
        return PageImage(image_data=self.image_data, page_number=self.page_number)


class VisionIngestRequest(_RequestBase, _FileMetadata):
    action: Literal["process_vision"] = "process_vision"
    title: str
    description: str | None = None
    document_type: str | None = Field(default=None, validation_alias=AliasChoices("document_type", "documentType"))
    images: list[VisionPage] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class ReprocessRequest(_RequestBase):
    action: Literal["process_document"] = "process_document"
    document_id: str = Field(validation_alias=AliasChoices("document_id", "documentId"))


class SearchRequest(_RequestBase):
    action: Literal["search"] = "search"
    query: str
    top_k: int | None = Field(default=None, ge=1, validation_alias=AliasChoices("top_k", "matchCount"))
    min_similarity: float | None = Field(
        default=None, ge=0.0, le=1.0, validation_alias=AliasChoices("min_similarity", "matchThreshold")
    )


class ChatRequest(_RequestBase):
    action: Literal["chat"] = "chat"
    query: str = Field(default="", validation_alias=AliasChoices("query", "userMessage"))
    history: list[ChatTurn] = Field(
        default_factory=list, validation_alias=AliasChoices("history", "conversationHistory")
    )
    external_context: str | None = Field(
        default=None, validation_alias=AliasChoices("external_context", "vehicleContext")
    )


class DeleteRequest(_RequestBase):
    action: Literal["delete_document"] = "delete_document"
    document_id: str = Field(validation_alias=AliasChoices("document_id", "documentId"))


RagRequest = Annotated[
    Union[
        TextIngestRequest,
        VisionIngestRequest,
        ReprocessRequest,
        SearchRequest,
        ChatRequest,
        DeleteRequest,
    ],
    Field(discriminator="action"),
]
