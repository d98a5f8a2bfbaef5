import pytest

from app.modules.docintake.services.document_service import assemble_document, render_html
from app.modules.docintake.services.documents.common import contains_placeholder, parse_bequest
from app.modules.docintake.services.documents.power_of_attorney import POWER_OF_ATTORNEY_SPEC
from app.modules.docintake.services.documents.registry import get_document_spec, list_document_specs
from app.modules.docintake.services.documents.will import WILL_SPEC
from app.modules.docintake.services.errors import UnknownDocumentTypeError


def _clauses(spec, answers):
    return {f: spec.generate(f, v, answers) for f, v in answers.items()}


def test_registry():
    assert get_document_spec(" Will ") is WILL_SPEC
    assert {s.doc_type for s in list_document_specs()} == {"will", "power_of_attorney"}
    with pytest.raises(UnknownDocumentTypeError):
        get_document_spec("lease")


def test_will_clauses(will_answers):
    clauses = _clauses(WILL_SPEC, will_answers)
    assert clauses["full_name"] == (
        "I, John Smith, residing at 12 Oak Street, Springfield, declare this to be my Last Will and Testament."
    )
    assert clauses["marital_status"] == "I am currently married to Jane Smith."
    assert clauses["executor_name"] == "I appoint Robert Brown, my friend, as Executor of this Will."
    assert clauses["funeral_wishes"] == ""
    # folded into other sentences
    assert clauses["address"] == ""
    assert clauses["spouse_name"] == ""


def test_preamble_needs_an_address(will_answers):
    will_answers["address"] = "skip"
    assert WILL_SPEC.generate("full_name", "John Smith", will_answers) == ""


def test_married_without_spouse_renders_nothing(will_answers):
    will_answers["spouse_name"] = "none"
    assert WILL_SPEC.generate("marital_status", "Married", will_answers) == ""


def test_bequests_one_sentence_per_line(will_answers):
    will_answers.update(has_specific_bequests=True, bequest_details="Watch - John; Car - Mary")
    assert WILL_SPEC.generate("has_specific_bequests", True, will_answers) == (
        "I bequeath my watch to John. I bequeath my car to Mary."
    )


def test_parse_bequest_separators():
    assert parse_bequest("Piano to my niece") == ("Piano", "my niece")
    assert parse_bequest("Boat: Sam") == ("Boat", "Sam")
    assert parse_bequest("just some text") is None


def test_children_clause(will_answers):
    will_answers.update(has_children=True, children_details="tom smith, 10\nAnna Smith, age 7")
    assert WILL_SPEC.generate("has_children", True, will_answers) == (
        "I have the following child(ren): Tom Smith (age 10), Anna Smith (age 7)."
    )


def test_self_appointment_suppresses_clause(will_answers):
    will_answers["executor_name"] = "john smith"
    assert WILL_SPEC.generate("executor_name", "john smith", will_answers) == ""


FULL_WILL = {
    "full_name": "John Smith",
    "date_of_birth": "1970-01-01",
    "address": "12 Oak Street, Springfield",
    "marital_status": "Married",
    "spouse_name": "Jane Smith",
    "has_children": True,
    "children_details": "Tom Smith, 10",
    "executor_name": "Robert Brown",
    "executor_relationship": "Friend",
    "has_alternate_executor": True,
    "alternate_executor_name": "Ann Lee",
    "has_specific_bequests": True,
    "bequest_details": "Watch - Tom",
    "residual_beneficiary": "Jane Smith",
    "has_minor_children": True,
    "guardian_name": "Ann Lee",
    "funeral_wishes": "Cremation",
}


FULL_POA = {
    "full_name": "Alice Walker",
    "date_of_birth": "1965-03-02",
    "address": "1 River Road",
    "poa_type": "Durable",
    "agent_name": "Bob Walker",
    "agent_address": "2 Hill Street",
    "agent_relationship": "Sibling",
    "has_alternate_agent": True,
    "alternate_agent_name": "Carl Walker",
    "powers": "All legal powers",
    "effective_date": "Immediately upon signing",
    "special_instructions": "Keep records of every transaction",
}


EVERY_FIELD = [
    (spec, answers, q.id)
    for spec, answers in ((WILL_SPEC, FULL_WILL), (POWER_OF_ATTORNEY_SPEC, FULL_POA))
    for q in spec.questions
]


@pytest.mark.parametrize(
    "spec,answers,field_id",
    EVERY_FIELD,
    ids=[f"{spec.doc_type}-{field_id}" for spec, _, field_id in EVERY_FIELD],
)
def test_placeholders_never_survive(spec, answers, field_id):
    answers = {**answers, field_id: "[Some Value]"}
    clauses = _clauses(spec, answers)
    assert not any(contains_placeholder(clause) for clause in clauses.values())

    doc = assemble_document(spec, answers, clauses)
    assert not contains_placeholder(doc.to_text())
    assert not contains_placeholder(render_html(doc))


def test_poa_clauses(poa_answers):
    clauses = _clauses(POWER_OF_ATTORNEY_SPEC, poa_answers)
    assert clauses["agent_name"] == (
        "I hereby appoint Bob Walker, my sibling, residing at 2 Hill Street, as my Attorney-in-Fact (Agent)."
    )
    assert clauses["powers"] == "I grant my Agent the following powers: all legal powers."
    assert clauses["poa_type"] == "This is a Durable Power of Attorney."
    assert clauses["special_instructions"] == ""


def test_assembled_will_drops_empty_sections(will_answers):
    doc = assemble_document(WILL_SPEC, will_answers, _clauses(WILL_SPEC, will_answers))

    titles = [s.title for s in doc.sections]
    assert titles == ["Family Information", "Executor", "Bequests"]
    assert doc.preamble[1] == "I was born on 1970-01-01."
    assert doc.signatory == "John Smith"
    assert all(clause for section in doc.sections for clause in section.clauses)


def test_render_html(poa_answers):
    doc = assemble_document(
        POWER_OF_ATTORNEY_SPEC,
        poa_answers,
        _clauses(POWER_OF_ATTORNEY_SPEC, poa_answers),
        acknowledged_gaps=["You indicated an alternate agent but did not provide their name."],
    )
    page = render_html(doc)
    assert "<h1 class=\"center\">POWER OF ATTORNEY</h1>" in page
    assert "Special Instructions" not in page
    assert "PRINCIPAL: Alice Walker" in page
    assert "does not constitute legal advice" in page
    assert doc.filename().startswith("power_of_attorney_")
