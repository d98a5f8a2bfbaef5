from __future__ import annotations

from typing import Any, Mapping

from app.modules.docintake.services.documents.base import DocumentSpec, QuestionSpec, ValidationRule
from app.modules.docintake.services.documents.common import (
    capitalize_first,
    capitalize_name,
    has_text,
    is_blank,
    same_person,
)

POWER_OF_ATTORNEY = "power_of_attorney"

POA_TYPES = ("General", "Durable", "Medical", "Financial")
POWERS = (
    "All legal powers",
    "Financial matters only",
    "Healthcare decisions only",
    "Real estate transactions only",
)
_NON_MEDICAL_POWERS = ("Financial matters only", "Real estate transactions only")
EFFECTIVE = ("Immediately upon signing", "Upon my incapacity (as certified by a physician)")

QUESTIONS = (
    QuestionSpec("full_name", "What is your full legal name (Principal)?", "text", True, legal_label="Principal"),
    QuestionSpec("date_of_birth", "What is your date of birth? (YYYY-MM-DD)", "date", True),
    QuestionSpec("address", "What is your address?", "text", True),
    QuestionSpec("poa_type", "Type of Power of Attorney?", "select", True, options=POA_TYPES),
    QuestionSpec("agent_name", "Name of your Agent (Attorney-in-Fact)?", "text", True, legal_label="Agent"),
    QuestionSpec("agent_address", "Agent's address?", "text", True),
    QuestionSpec("agent_relationship", "Relationship with Agent?", "select", True,
                 options=("Spouse", "Child", "Parent", "Sibling", "Friend", "Other")),
    QuestionSpec("has_alternate_agent", "Do you want an alternate Agent?", "boolean", True),
    QuestionSpec("alternate_agent_name", "Name of alternate Agent?", "text", False,
                 visible_when=lambda a: a.get("has_alternate_agent") is True),
    QuestionSpec("powers", "What powers to grant?", "select", True, options=POWERS),
    QuestionSpec("effective_date", "When does this become effective?", "select", True, options=EFFECTIVE),
    QuestionSpec("special_instructions", "Any special instructions for your Agent?", "text", False),
)

RULES = (
    ValidationRule(
        kind="contradiction",
        fields=("full_name", "agent_name"),
        evaluate=lambda a: same_person(a.get("full_name"), a.get("agent_name")),
        message="LOGICAL ERROR: You cannot appoint yourself as your own Agent. Please provide the name of another person.",
    ),
    ValidationRule(
        kind="contradiction",
        fields=("full_name", "alternate_agent_name"),
        evaluate=lambda a: a.get("has_alternate_agent") is True
        and same_person(a.get("full_name"), a.get("alternate_agent_name")),
        message="LOGICAL ERROR: You cannot appoint yourself as your own Alternate Agent. Please provide the name of another person.",
    ),
    ValidationRule(
        kind="contradiction",
        fields=("poa_type", "powers"),
        evaluate=lambda a: (a.get("poa_type") == "Medical" and a.get("powers") in _NON_MEDICAL_POWERS)
        or (a.get("poa_type") == "Financial" and a.get("powers") == "Healthcare decisions only"),
        message=(
            "CONTRADICTION DETECTED: The type of Power of Attorney does not match the powers granted "
            "(a Medical POA cannot grant only financial or real estate powers, and a Financial POA cannot "
            "grant only healthcare powers). Please choose the powers to grant again."
        ),
    ),
    ValidationRule(
        kind="required_with",
        fields=("has_alternate_agent", "alternate_agent_name"),
        evaluate=lambda a: a.get("has_alternate_agent") is True and not has_text(a.get("alternate_agent_name")),
        message="You indicated an alternate agent but did not provide their name.",
    ),
)


def generate_clause(field: str, value: Any, answers: Mapping[str, Any]) -> str:
    if is_blank(value):
        return ""
    principal = answers.get("full_name")

    if field == "full_name":
        address = answers.get("address")
        if not has_text(value) or not has_text(address):
            return ""
        return (
            f'I, {capitalize_name(value)}, residing at {str(address).strip()} (hereinafter "Principal"), '
            "execute this Power of Attorney."
        )
    if field == "date_of_birth":
        return f"I was born on {str(value).strip()}." if has_text(value) else ""
    if field == "poa_type":
        return f"This is a {value} Power of Attorney." if value in POA_TYPES else ""
    if field == "agent_name":
        agent_address = answers.get("agent_address")
        if not has_text(value) or same_person(value, principal) or not has_text(agent_address):
            return ""
        rel = str(answers.get("agent_relationship") or "").lower()
        residing = f"residing at {str(agent_address).strip()}"
        if rel and rel != "other":
            return f"I hereby appoint {capitalize_name(value)}, my {rel}, {residing}, as my Attorney-in-Fact (Agent)."
        return f"I hereby appoint {capitalize_name(value)}, {residing}, as my Attorney-in-Fact (Agent)."
    if field == "has_alternate_agent":
        alternate = answers.get("alternate_agent_name")
        if value is not True or not has_text(alternate) or same_person(alternate, principal):
            return ""
        agent = answers.get("agent_name")
        agent = capitalize_name(agent) if has_text(agent) and not same_person(agent, principal) else "the Agent"
        return f"If {agent} is unable or unwilling to serve, I appoint {capitalize_name(alternate)} as Alternate Agent."
    if field == "powers":
        if value not in POWERS:
            return ""
        return f"I grant my Agent the following powers: {value[:1].lower() + value[1:]}."
    if field == "effective_date":
        if value not in EFFECTIVE:
            return ""
        return f"This Power of Attorney shall become effective {value[:1].lower() + value[1:]}."
    if field == "special_instructions":
        if not has_text(value):
            return ""
        return f"Special instructions: {capitalize_first(str(value)).rstrip('.')}."
    # address, agent_address, agent_relationship and alternate_agent_name are folded into other clauses
    return ""


POWER_OF_ATTORNEY_SPEC = DocumentSpec(
    doc_type=POWER_OF_ATTORNEY,
    name="Power of Attorney",
    description="Appoint someone to make decisions for you",
    questions=QUESTIONS,
    rules=RULES,
    generator=generate_clause,
    preamble_fields=("full_name", "date_of_birth"),
    sections=(
        ("Appointment of Agent", ("agent_name", "has_alternate_agent")),
        ("Grant of Authority", ("poa_type", "powers", "effective_date")),
        ("Special Instructions", ("special_instructions",)),
    ),
    signatory_label="Principal",
)
