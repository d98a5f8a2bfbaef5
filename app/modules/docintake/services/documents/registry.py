from __future__ import annotations

from typing import Dict, List

from app.modules.docintake.services.documents.base import DocumentSpec
from app.modules.docintake.services.documents.power_of_attorney import POWER_OF_ATTORNEY_SPEC
from app.modules.docintake.services.documents.will import WILL_SPEC
from app.modules.docintake.services.errors import UnknownDocumentTypeError

# Process-wide, read-only. Add a document type by defining a DocumentSpec and listing it here.
DOCUMENTS: Dict[str, DocumentSpec] = {
    spec.doc_type: spec for spec in (WILL_SPEC, POWER_OF_ATTORNEY_SPEC)
}


def get_document_spec(doc_type: str) -> DocumentSpec:
    key = (doc_type or "").strip().lower()
    spec = DOCUMENTS.get(key)
    if spec is None:
        raise UnknownDocumentTypeError(doc_type)
    return spec


def list_document_specs() -> List[DocumentSpec]:
    return list(DOCUMENTS.values())
