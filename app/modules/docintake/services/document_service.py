"""
Final document assembly from a completed interview.

Only non-empty clauses are rendered and sections with nothing to say are dropped,
so a skipped optional answer never leaves a placeholder behind.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Mapping, Optional, Sequence

from app.modules.docintake.services.documents.base import DocumentSpec
from app.modules.docintake.services.documents.common import capitalize_name, contains_placeholder, has_text

logger = logging.getLogger(__name__)

DISCLAIMER = (
    "This document was generated by an automated system. It does not constitute legal advice. "
    "Please consult a qualified attorney to ensure this document meets your needs."
)
WITNESS_COUNT = 2


@dataclass
class DocumentSection:
    title: str
    clauses: List[str]


@dataclass
class AssembledDocument:
    doc_type: str
    title: str
    preamble: List[str]
    sections: List[DocumentSection]
    signatory: str
    signatory_label: str
    acknowledged_gaps: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    disclaimer: str = DISCLAIMER
    generated_on: str = field(default_factory=lambda: date.today().isoformat())

    def filename(self, ext: str = "html") -> str:
        return f"{self.doc_type}_{self.generated_on}.{ext}"

    def to_text(self) -> str:
        parts = [self.title, ""]
        parts.extend(self.preamble)
        for section in self.sections:
            parts.extend(["", section.title])
            parts.extend(section.clauses)
        parts.extend(["", "IN WITNESS WHEREOF", self.signatory, "", self.disclaimer])
        return "\n".join(parts).strip()


def _usable(clause: Optional[str]) -> bool:
    return bool(clause and clause.strip()) and not contains_placeholder(clause)


def assemble_document(
    spec: DocumentSpec,
    answers: Mapping[str, Any],
    clauses: Mapping[str, str],
    acknowledged_gaps: Sequence[str] = (),
    warnings: Sequence[str] = (),
) -> AssembledDocument:
    preamble = [clauses[f].strip() for f in spec.preamble_fields if _usable(clauses.get(f))]

    sections: List[DocumentSection] = []
    for title, field_ids in spec.sections:
        body = [clauses[f].strip() for f in field_ids if _usable(clauses.get(f))]
        if body:
            sections.append(DocumentSection(title=title, clauses=body))

    full_name = answers.get("full_name")
    named = has_text(full_name) and not contains_placeholder(str(full_name))
    signatory = capitalize_name(full_name) if named else spec.signatory_label

    logger.info(
        f"[docgen] assembled {spec.doc_type}: {len(sections)} section(s), "
        f"{len(acknowledged_gaps)} acknowledged gap(s)"
    )
    return AssembledDocument(
        doc_type=spec.doc_type,
        title=spec.name.upper(),
        preamble=preamble,
        sections=sections,
        signatory=signatory,
        signatory_label=spec.signatory_label,
        acknowledged_gaps=list(acknowledged_gaps),
        warnings=list(warnings),
    )


def render_html(doc: AssembledDocument) -> str:
    esc = html.escape
    preamble_html = "".join(f"<p>{esc(p)}</p>" for p in doc.preamble)

    body_parts = []
    for section in doc.sections:
        clauses_html = "".join(f"<p>{esc(c)}</p>" for c in section.clauses)
        body_parts.append(f"<h3>{esc(section.title)}</h3>{clauses_html}")

    witness_html = "".join(
        "<p class='small'>Signature: _________________________________<br/>"
        "Print Name: ________________________________<br/>"
        "Address: __________________________________</p>"
        for _ in range(WITNESS_COUNT)
    )

    page = f"""
<!doctype html><html><head><meta charset="utf-8"/><title>{esc(doc.title)}</title>
<style>
body{{font-family:'Times New Roman',serif;color:#111}}
.page{{width:8.27in;margin:0.6in auto}}
.center{{text-align:center}}
h1,h3{{margin:0.22in 0 0.12in}}
h1{{font-size:20pt;text-transform:uppercase;letter-spacing:.5px}}
h3{{font-size:13pt}}
p{{margin:0 0 .14in;line-height:1.35;text-align:justify}}
.small{{font-size:10pt}} .hr{{border-top:1px solid #444;margin:.2in 0}}
.sig{{margin-top:.5in}} .disclaimer{{margin-top:.4in;font-size:8pt;font-style:italic;color:#808080}}
</style></head><body><div class="page">

<h1 class="center">{esc(doc.title)}</h1>
<div class="hr"></div>
{preamble_html}

{''.join(body_parts)}

<div class="hr"></div>
<p><strong>IN WITNESS WHEREOF</strong></p>
<p>I have executed this document on _________________, 20___.</p>
<div class="sig"><p><strong>______________________________</strong><br/>{esc(doc.signatory_label.upper())}: {esc(doc.signatory)}</p></div>
<p><strong>WITNESSES:</strong></p>
{witness_html}
<p class="disclaimer center">{esc(doc.disclaimer)}</p>
</div></body></html>
""".strip()
    return page
