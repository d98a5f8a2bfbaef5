from pydantic import BaseModel, Field
from typing import List, Optional


class DocumentTypeInfo(BaseModel):
    doc_type: str
    name: str
    description: str
    question_count: int


class DocumentListResponse(BaseModel):
    documents: List[DocumentTypeInfo]


class DocumentSectionOut(BaseModel):
    title: str
    clauses: List[str]


class GeneratedDocumentResponse(BaseModel):
    """Assembled document plus plain-text and printable HTML renderings."""
    success: bool = True
    doc_type: str
    title: str
    preamble: List[str]
    sections: List[DocumentSectionOut]
    signatory: str
    acknowledged_gaps: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    disclaimer: str
    filename: str
    text: str
    html: Optional[str] = None
