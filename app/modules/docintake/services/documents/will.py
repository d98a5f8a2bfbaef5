"""
Last Will and Testament: questions, cross-field rules, clause generator and the
distribution-model consistency check.
"""

from __future__ import annotations

import re
from typing import Any, List, Mapping, Optional

from app.modules.docintake.services.documents.base import (
    ConsistencyReport,
    DocumentSpec,
    QuestionSpec,
    ValidationRule,
)
from app.modules.docintake.services.documents.common import (
    NO_SPOUSE_PHRASES,
    capitalize_first,
    capitalize_name,
    has_text,
    is_blank,
    parse_bequest,
    phrase_pattern,
    same_person,
    split_lines,
)

WILL = "will"

_NO_SPOUSE = phrase_pattern(NO_SPOUSE_PHRASES)

MARITAL_OPTIONS = ("Single", "Married", "Divorced", "Widowed", "Separated")
RELATIONSHIP_OPTIONS = ("Spouse", "Child", "Parent", "Sibling", "Friend", "Attorney", "Other")

_MARITAL_CLAUSES = {
    "Single": "I am currently single and have never been married.",
    "Divorced": "I am currently divorced.",
    "Widowed": "I am currently widowed.",
    "Separated": "I am currently legally separated.",
}


def _is_true(field: str):
    return lambda answers: answers.get(field) is True


def _spouse_given(answers: Mapping[str, Any]) -> bool:
    spouse = answers.get("spouse_name")
    return has_text(spouse) and not _NO_SPOUSE.search(str(spouse))


# -------------------- Questions --------------------

QUESTIONS = (
    QuestionSpec("full_name", "What is your full legal name?", "text", True, legal_label="Testator"),
    QuestionSpec("date_of_birth", "What is your date of birth? (YYYY-MM-DD)", "date", True),
    QuestionSpec("address", "What is your residential address?", "text", True),
    QuestionSpec("marital_status", "What is your current marital status?", "select", True, options=MARITAL_OPTIONS),
    QuestionSpec("spouse_name", "What is your spouse's full name?", "text", False,
                 visible_when=lambda a: a.get("marital_status") == "Married"),
    QuestionSpec("has_children", "Do you have any children?", "boolean", True),
    QuestionSpec("children_details", "Please list your children (Name, Age on each line)", "text", False,
                 visible_when=_is_true("has_children")),
    QuestionSpec("executor_name", "Who will be the executor of your will?", "text", True, legal_label="Executor"),
    QuestionSpec("executor_relationship", "What is your relationship with the executor?", "select", True,
                 options=RELATIONSHIP_OPTIONS),
    QuestionSpec("has_alternate_executor", "Do you want to name an alternate executor?", "boolean", True),
    QuestionSpec("alternate_executor_name", "What is the alternate executor's name?", "text", False,
                 visible_when=_is_true("has_alternate_executor")),
    QuestionSpec("has_specific_bequests", "Do you have specific items to leave to specific people?", "boolean", True),
    QuestionSpec("bequest_details", "Describe each item and recipient (Item - Recipient, one per line)", "text", False,
                 visible_when=_is_true("has_specific_bequests")),
    QuestionSpec("residual_beneficiary", "Who will receive the remainder of your estate?", "text", True),
    QuestionSpec("has_minor_children", "Do you have minor children needing a guardian?", "boolean", True,
                 visible_when=_is_true("has_children")),
    QuestionSpec("guardian_name", "Who will be the guardian?", "text", False,
                 visible_when=_is_true("has_minor_children")),
    QuestionSpec("funeral_wishes", "Any funeral or burial wishes?", "text", False),
)


# -------------------- Validation rules --------------------

RULES = (
    ValidationRule(
        kind="contradiction",
        fields=("marital_status", "spouse_name"),
        evaluate=lambda a: a.get("marital_status") == "Married" and not _spouse_given(a),
        message=(
            'CONTRADICTION DETECTED: Your marital status is "Married" but no spouse name was provided. '
            "Please provide your spouse's full name, or correct your marital status if you are not married."
        ),
    ),
    ValidationRule(
        kind="contradiction",
        fields=("spouse_name", "marital_status"),
        evaluate=lambda a: a.get("marital_status") == "Single" and _spouse_given(a),
        message=(
            'CONTRADICTION DETECTED: Your marital status is "Single" but a spouse name was provided. '
            "Please confirm your current marital status."
        ),
    ),
    ValidationRule(
        kind="contradiction",
        fields=("full_name", "executor_name"),
        evaluate=lambda a: same_person(a.get("full_name"), a.get("executor_name")),
        message=(
            "LOGICAL ERROR: You cannot appoint yourself as executor. "
            "Please provide the name of another person to serve as executor."
        ),
    ),
    ValidationRule(
        kind="contradiction",
        fields=("full_name", "alternate_executor_name"),
        evaluate=lambda a: a.get("has_alternate_executor") is True
        and same_person(a.get("full_name"), a.get("alternate_executor_name")),
        message=(
            "LOGICAL ERROR: You cannot appoint yourself as alternate executor. "
            "Please provide the name of another person."
        ),
    ),
    ValidationRule(
        kind="contradiction",
        fields=("full_name", "spouse_name"),
        evaluate=lambda a: a.get("marital_status") == "Married"
        and same_person(a.get("full_name"), a.get("spouse_name")),
        message=(
            "LOGICAL ERROR: Your spouse's name is the same as your own. "
            "Please provide your spouse's full name."
        ),
    ),
    ValidationRule(
        kind="contradiction",
        fields=("full_name", "guardian_name"),
        evaluate=lambda a: a.get("has_minor_children") is True
        and same_person(a.get("full_name"), a.get("guardian_name")),
        message=(
            "LOGICAL ERROR: You cannot appoint yourself as guardian of your minor children. "
            "Please provide the name of another person."
        ),
    ),
    ValidationRule(
        kind="required_with",
        fields=("has_children", "children_details"),
        evaluate=lambda a: a.get("has_children") is True and not has_text(a.get("children_details")),
        message="You indicated you have children but did not provide their details.",
    ),
    ValidationRule(
        kind="required_with",
        fields=("has_alternate_executor", "alternate_executor_name"),
        evaluate=lambda a: a.get("has_alternate_executor") is True and not has_text(a.get("alternate_executor_name")),
        message="You indicated an alternate executor but did not provide their name.",
    ),
    ValidationRule(
        kind="required_with",
        fields=("has_specific_bequests", "bequest_details"),
        evaluate=lambda a: a.get("has_specific_bequests") is True and not has_text(a.get("bequest_details")),
        message="You indicated specific bequests but did not provide details.",
    ),
    ValidationRule(
        kind="required_with",
        fields=("has_minor_children", "guardian_name"),
        evaluate=lambda a: a.get("has_minor_children") is True and not has_text(a.get("guardian_name")),
        message="You indicated minor children but did not name a guardian.",
    ),
)


# -------------------- Clause generator --------------------

def _children_clause(details: str) -> str:
    children: List[str] = []
    for line in split_lines(details):
        parts = [p.strip() for p in line.split(",")]
        name = capitalize_name(parts[0] or line)
        if not name:
            continue
        age = re.sub(r"[^0-9]", "", parts[1]) if len(parts) > 1 else ""
        children.append(f"{name} (age {age})" if age else name)
    if not children:
        return ""
    return f"I have the following child(ren): {', '.join(children)}."


def _bequest_clauses(details: str) -> str:
    sentences: List[str] = []
    for line in split_lines(details):
        parsed = parse_bequest(line)
        if parsed:
            item, recipient = parsed
            item = item[:1].lower() + item[1:]
            sentences.append(f"I bequeath my {item} to {capitalize_name(recipient)}.")
        else:
            sentences.append(f"I bequeath {capitalize_name(line)}.")
    return " ".join(sentences)


def generate_clause(field: str, value: Any, answers: Mapping[str, Any]) -> str:
    if is_blank(value):
        return ""
    testator = answers.get("full_name")

    if field == "full_name":
        address = answers.get("address")
        if not has_text(value) or not has_text(address):
            return ""
        return (
            f"I, {capitalize_name(value)}, residing at {str(address).strip()}, "
            "declare this to be my Last Will and Testament."
        )

    if field == "date_of_birth":
        return f"I was born on {str(value).strip()}." if has_text(value) else ""

    if field == "marital_status":
        if value == "Married":
            if not _spouse_given(answers) or same_person(answers.get("spouse_name"), testator):
                return ""
            return f"I am currently married to {capitalize_name(answers['spouse_name'])}."
        return _MARITAL_CLAUSES.get(str(value), "")

    if field == "has_children":
        details = answers.get("children_details")
        if value is not True or not has_text(details):
            return ""
        return _children_clause(str(details))

    if field == "executor_name":
        if not has_text(value) or same_person(value, testator):
            return ""
        rel = str(answers.get("executor_relationship") or "").lower()
        if rel and rel != "other":
            return f"I appoint {capitalize_name(value)}, my {rel}, as Executor of this Will."
        return f"I appoint {capitalize_name(value)} as Executor of this Will."

    if field == "has_alternate_executor":
        alternate = answers.get("alternate_executor_name")
        if value is not True or not has_text(alternate) or same_person(alternate, testator):
            return ""
        executor = answers.get("executor_name")
        if has_text(executor) and not same_person(executor, testator):
            executor = capitalize_name(executor)
        else:
            executor = "the Executor"
        return (
            f"In the event {executor} is unable or unwilling to serve, "
            f"I appoint {capitalize_name(alternate)} as Alternate Executor."
        )

    if field == "has_specific_bequests":
        details = answers.get("bequest_details")
        if value is not True or not has_text(details):
            return ""
        return _bequest_clauses(str(details))

    if field == "residual_beneficiary":
        if not has_text(value):
            return ""
        return (
            "I give, devise, and bequeath all the rest, residue, and remainder of my estate "
            f"to {capitalize_name(value)}."
        )

    if field == "has_minor_children":
        guardian = answers.get("guardian_name")
        if value is not True or not has_text(guardian) or same_person(guardian, testator):
            return ""
        return f"I appoint {capitalize_name(guardian)} as guardian for any minor children."

    if field == "funeral_wishes":
        if not has_text(value):
            return ""
        return f"My funeral and burial wishes are: {capitalize_first(str(value)).rstrip('.')}."

    # address, spouse_name, children_details, executor_relationship, alternate_executor_name,
    # bequest_details and guardian_name are folded into the sentences above
    return ""


# -------------------- Distribution model --------------------

def check_distribution(answers: Mapping[str, Any]) -> ConsistencyReport:
    """Derive the asset-distribution scheme and flag combinations implying more than one.

    The sole-beneficiary test is a heuristic: the spouse's first-name token appearing
    anywhere in the residual-beneficiary text. Partial-name collisions ("Ann" inside
    "Joanna") will misfire.
    """
    errors: List[str] = []
    warnings: List[str] = []

    has_minor_children = answers.get("has_minor_children") is True
    if not has_minor_children and has_text(answers.get("guardian_name")):
        warnings.append("A guardian was named but you indicated no minor children. The guardian clause will not be rendered.")

    has_specific_bequests = answers.get("has_specific_bequests") is True and has_text(answers.get("bequest_details"))
    residual = answers.get("residual_beneficiary")
    has_residual = has_text(residual)
    has_spouse = answers.get("marital_status") == "Married" and _spouse_given(answers)
    has_children_beneficiaries = answers.get("has_children") is True and has_text(answers.get("children_details"))

    spouse_first: Optional[str] = None
    if has_spouse:
        tokens = str(answers["spouse_name"]).lower().split()
        spouse_first = tokens[0] if tokens else None
    spouse_is_sole = bool(has_residual and spouse_first and spouse_first in str(residual).lower())

    if spouse_is_sole and has_children_beneficiaries and has_specific_bequests:
        errors.append(
            "CONFLICT: You have multiple conflicting distribution models: spouse as sole beneficiary, "
            "children as beneficiaries, AND specific bequests. Please choose only ONE distribution approach."
        )
    elif spouse_is_sole and has_children_beneficiaries:
        errors.append(
            "CONFLICT: You named your spouse as sole beneficiary but also listed children as beneficiaries. "
            "Please choose ONE primary distribution model."
        )

    if spouse_is_sole:
        model = "sole_beneficiary"
    elif has_children_beneficiaries and has_residual:
        model = "mixed"
    elif has_specific_bequests:
        model = "specific_bequests"
    elif has_children_beneficiaries:
        model = "children"
    else:
        model = "residuary"

    return ConsistencyReport(
        errors=tuple(errors),
        warnings=tuple(warnings),
        distribution_model=model,
        repair_field="residual_beneficiary",
    )


WILL_SPEC = DocumentSpec(
    doc_type=WILL,
    name="Last Will and Testament",
    description="Distribute your assets according to your wishes",
    questions=QUESTIONS,
    rules=RULES,
    generator=generate_clause,
    preamble_fields=("full_name", "date_of_birth"),
    sections=(
        ("Family Information", ("marital_status", "has_children")),
        ("Executor", ("executor_name", "has_alternate_executor")),
        ("Bequests", ("has_specific_bequests", "residual_beneficiary")),
        ("Guardian", ("has_minor_children",)),
        ("Additional Wishes", ("funeral_wishes",)),
    ),
    signatory_label="Testator",
    consistency=check_distribution,
)
