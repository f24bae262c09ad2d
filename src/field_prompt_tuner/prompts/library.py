"""
Prompt library

Curated extraction prompts for common contract and invoice fields, used as
starting points, as structural examples for the prompt generator, and as the
fallback when a generated prompt cannot be repaired.
"""

from __future__ import annotations

import re

from field_prompt_tuner.domain.constants import (
    NOT_PRESENT,
    OPTION_FIELD_TYPES,
    SIMPLE_PROMPT_MAX_LENGTH,
)

_COMPANY_SUFFIX_RE = re.compile(r"\b(Inc\.?|LLC|Corp\.?|Co\.?|Ltd\.?|Limited|Corporation)\b", re.IGNORECASE)

_DOCUMENT_TYPES = [
    (("nda", "confidential"), "NDA (Non-Disclosure Agreement)"),
    (("msa", "master"), "MSA (Master Service Agreement)"),
    (("sow", "statement"), "SOW (Statement of Work)"),
    (("lease", "rental"), "Lease Agreement"),
    (("contract",), "Contract"),
    (("invoice",), "Invoice"),
    (("amendment",), "Amendment"),
]


def is_simple_prompt(prompt: str | None) -> bool:
    """A prompt too short or too generic to be worth starting from"""
    if not prompt:
        return True
    return len(prompt) < SIMPLE_PROMPT_MAX_LENGTH or prompt.lower().startswith("extract the ")


def infer_document_type(template_key: str | None) -> str | None:
    """Guess the document type from a template key"""
    if not template_key:
        return None
    lower_key = template_key.lower()
    for keywords, label in _DOCUMENT_TYPES:
        if any(keyword in lower_key for keyword in keywords):
            return label
    return None


def is_counter_party_field(field_name: str) -> bool:
    lower_name = field_name.lower()
    return "counter party" in lower_name or "counterparty" in lower_name or "other party" in lower_name


def _counter_party_name(company: str | None) -> str:
    exclude = (
        f'Do NOT return "{company}", which is the extracting company present in every contract.'
        if company else
        "Do NOT return the extracting company that appears as a party in every contract."
    )
    return (
        'Search for the OTHER contracting party. Look in the opening paragraph after "by and between", '
        '"entered into between", "Agreement between" or "made by and among", identify both parties and keep '
        "the one that is not the recurring company. Also check the signature block section for "
        f'"By:", "Name:" or "Company:" labels. {exclude} Return ONLY the full legal name exactly as written, '
        f'including suffixes such as LLC or Inc. Return "{NOT_PRESENT}" if no counter party is identified.'
    )


def _counter_party_address(company: str | None) -> str:
    exclude = (
        f'Do NOT return the address of "{company}".' if company else
        "Do NOT return the extracting company's address."
    )
    return (
        "Search for the counter party's business address. Look in the opening paragraph near the counter "
        'party name, the notices section ("Notices", "Communications", "notice shall be sent to", '
        '"addressed to", "principal place of business", "with offices at"), and the signature block. '
        f"{exclude} Return the complete address including street, city, state and ZIP on a single line. "
        f'If several addresses exist, prefer the Notices section. Return "{NOT_PRESENT}" if none is found.'
    )


def _end_date(company: str | None) -> str:
    return (
        "Search for when this agreement ends. Look in the term section and the first paragraph for "
        '"expires on", "terminates on", "term ends", "valid until", "expiration date", "shall continue until". '
        "If no end date is written, calculate it from the effective date plus the stated term. "
        'For evergreen agreements return "Perpetual". Return the date in YYYY-MM-DD format. '
        f'Do NOT confuse the end date with notice periods or renewal dates. Return "{NOT_PRESENT}" if it cannot be determined.'
    )


def _effective_date(company: str | None) -> str:
    return (
        "Search for the date this agreement becomes effective. Check the header area, the opening paragraph "
        'and the signature block section. Look for phrases like "effective as of", "effective date", '
        '"dated as of", "commences on", "entered into as of", "start date". Return the date in YYYY-MM-DD '
        'format. If several dates exist, prefer the one explicitly labeled "Effective Date". Do NOT use '
        f'signature dates unless no other date exists. Return "{NOT_PRESENT}" if no date is found.'
    )


def _renewal(company: str | None, options: list[str] | None = None) -> str:
    choices = ", ".join(options) if options else "Autorenewal, Manual Renewal, Evergreen Renewal, No Renewal"
    return (
        'Search in the "Term", "Renewal" or "Duration" sections for how this agreement renews. Look for phrases '
        'like "automatically renew", "shall renew", "may be renewed", "successive periods", "unless either party '
        f'gives notice", "no renewal". Return exactly one of: {choices}. Do NOT guess from the title; if the '
        f'renewal clause is missing, infer from termination language or return "{NOT_PRESENT}".'
    )


def _termination_convenience(company: str | None) -> str:
    return (
        'Search in the "Termination" section for a right to end the agreement without cause. Look for '
        '"terminate for convenience", "terminate at will", "without cause", "for any reason", '
        '"at its sole discretion", "upon thirty days notice". Return exactly "Yes" if either party may terminate '
        'without a breach and "No" otherwise. Do NOT treat breach-based termination as convenience. '
        'If no termination clause exists, return "No".'
    )


def _governing_law(company: str | None) -> str:
    return (
        'Look in the section titled "Governing Law", "Applicable Law" or '
        '"Choice of Law", usually near the end of the agreement, for the governing law clause. Look for "governed by the laws of", '
        '"construed in accordance with", "subject to the laws of". Return ONLY the state or country name '
        '(for example "Delaware" or "England"). Do NOT include "State of" or venue and arbitration locations. '
        f'Return "{NOT_PRESENT}" if no governing law is specified.'
    )


def _notice_period(company: str | None) -> str:
    return (
        'Search in the "Termination", "Term" and "Renewal" sections for the notice required to terminate or '
        'prevent renewal. Look for phrases like "days written notice", "notice period of", "prior written '
        'notice", "advance notice", "written notice of non-renewal". Return the period exactly as a number '
        f'and unit (for example "30 Days"). Do NOT confuse it with cure periods for breach. Return "{NOT_PRESENT}" '
        "if no notice period is specified."
    )


def _vendor(company: str | None) -> str:
    return (
        "Search for the company issuing this invoice. Look in the header area and logo, and check the "
        '"From:", "Vendor:", "Supplier:", "Bill From:", "Remit To:", "Service Provider:" labels. Do NOT '
        'return names from the "Bill To" or "Ship To" sections, which are recipients. Return the full legal '
        f'name including suffixes such as Inc or LLC. Return "{NOT_PRESENT}" if no vendor is shown.'
    )


def _amount_due(company: str | None) -> str:
    return (
        "Search for the final amount due. Look in the totals area at the bottom of the invoice near the "
        'payment instructions. Look for "Amount Due:", "Total Due:", "Balance Due:", "Grand Total:", '
        '"Invoice Total:", "Total:". Return the exact numeric value with cents and no currency symbol '
        '(for example "1234.56"). Do NOT round and do NOT return the subtotal. '
        f'Return "{NOT_PRESENT}" if no total is shown.'
    )


def _po_number(company: str | None) -> str:
    return (
        "Search for the purchase order number in the header area and billing section of the invoice. "
        'Look for "PO #:", "P.O.:", "PO Number:", "Purchase Order:", "Customer PO:", "Your Order #:". '
        "Return the exact alphanumeric value as shown. Do NOT confuse it with the invoice number or "
        f'confirmation numbers. Return "{NOT_PRESENT}" if no purchase order is referenced.'
    )


def _payment_terms(company: str | None) -> str:
    return (
        "Search for the payment terms near the due date in the header area or the terms section. Look for "
        '"Terms:", "Payment Terms:", "Net Terms:", "NET 30", "Due on Receipt", "COD". Return the standardized '
        'term exactly as "NET 30" style text without extra words like "days". Do NOT return the due date '
        f'itself. Return "{NOT_PRESENT}" if no payment terms are specified.'
    )


# Ordered: the first matching entry wins
_FIELD_EXAMPLES = [
    (lambda n: "counter party" in n and "name" in n, _counter_party_name),
    (lambda n: "counter party" in n and "address" in n, _counter_party_address),
    (lambda n: "end date" in n or "expiration" in n or "termination date" in n, _end_date),
    (lambda n: "effective date" in n or "start date" in n, _effective_date),
    (lambda n: "termination" in n and "convenience" in n, _termination_convenience),
    (lambda n: "governing law" in n or "jurisdiction" in n, _governing_law),
    (lambda n: "notice" in n and "period" in n, _notice_period),
    (lambda n: "vendor" in n or "supplier" in n, _vendor),
    (lambda n: "amount due" in n or ("total" in n and "amount" in n), _amount_due),
    (lambda n: "po number" in n or "purchase order" in n, _po_number),
    (lambda n: n in ("term", "terms") or "payment term" in n, _payment_terms),
]


def _type_default(field_name: str, field_type: str) -> str:
    if field_type in OPTION_FIELD_TYPES:
        return (
            f"Search for the {field_name} in the document title, the header area and the first paragraph. "
            f'Look for labels such as "{field_name}", "Type", "Category", "Classification", "Kind of", '
            '"Nature of". Return exactly one value from the available options that best matches the document. '
            f'Do NOT invent values outside the options. Return "{NOT_PRESENT}" if no option clearly applies.'
        )
    if field_type == "date":
        return (
            f"Search for the {field_name} in the header area, the opening paragraph and the signature block "
            f'section. Look for phrases like "{field_name}", "dated", "as of", "on or before", "effective". '
            "Return the date in YYYY-MM-DD format; if only month and year are given, use the first day of the "
            f'month. Do NOT return unrelated dates such as signature dates. Return "{NOT_PRESENT}" if no date is found.'
        )
    if field_type in ("number", "float"):
        return (
            f"Search for the {field_name}. Look in the relevant section, any summary table and the totals area "
            "near the end of the document. "
            f'Look for labels such as "{field_name}", "Total", "Amount", "Sum", "Value". Return the exact numeric '
            "value with all of its decimal places and no currency symbol or thousands separator. Do NOT round "
            "numbers and do NOT return percentages or rates instead of amounts. "
            f'Return "{NOT_PRESENT}" if no number is found.'
        )
    return (
        f"Search for the {field_name} in the relevant section, the header area and the signature block. "
        f'Look for labels such as "{field_name}", "Name", "Title", "Reference", "Description". Return the exact '
        "value as it appears in the document, without added commentary or surrounding label text. "
        "If several candidates exist, prefer the most authoritative one and do NOT combine values "
        f'from different sections. Return "{NOT_PRESENT}" if the value is not found anywhere in the document.'
    )


def get_example_prompt_for_field(
    field_name: str,
    field_type: str = "string",
    options: list[str] | None = None,
    company_to_exclude: str | None = None,
) -> str:
    """
    Return a high-quality example prompt for a field

    Matches common contract and invoice fields by name, then falls back to a
    prompt for the field type.

    Args:
        field_name: Human-readable field name
        field_type: Field type (string, date, number, enum, ...)
        options: Option keys for option fields
        company_to_exclude: Extracting company for counter-party fields

    Returns:
        Example prompt text
    """
    lower_name = field_name.lower()
    if "renewal" in lower_name:
        return _renewal(company_to_exclude, options)
    for matches, build in _FIELD_EXAMPLES:
        if matches(lower_name):
            return build(company_to_exclude)
    return _type_default(field_name, field_type)


def get_field_specific_guidance(field_name: str, field_type: str) -> str:
    """Extra guidance for fields that are commonly extracted wrong ("" when none applies)"""
    lower_name = field_name.lower()
    if "counter party" in lower_name:
        return (
            '"Counter party" means the OTHER party in the agreement, not the company doing the extraction. '
            "In an agreement between Company A and Company B where A is extracting, B is the counter party.\n"
        )
    if "end date" in lower_name:
        return (
            "End dates are often not stated. Calculate them when needed: effective date plus term "
            "gives the end date.\n"
        )
    if "termination" in lower_name and "convenience" in lower_name:
        return '"For convenience" means without a reason or breach, unlike termination for cause.\n'
    if "renewal" in lower_name:
        return 'Distinguish automatic renewal ("automatically renew") from optional renewal ("may renew").\n'
    if "vendor" in lower_name or "supplier" in lower_name:
        return "The vendor SENDS the invoice. Do not confuse it with the Bill To customer.\n"
    if any(word in lower_name for word in ("amount", "total", "price", "cost")):
        return 'Extract the exact value including cents. "$1,234.99" becomes "1234.99". Never round.\n'
    if "po number" in lower_name or "purchase order" in lower_name:
        return "PO numbers are customer references, distinct from invoice numbers (often starting with INV).\n"
    if "item" in lower_name and ("line" in lower_name or field_type == "multiSelect"):
        return "Line items are rows of the main invoice table. Exclude headers, subtotals and tax lines.\n"
    return ""


def detect_common_company(failures: list) -> str | None:
    """
    Detect the extracting company from repeated counter-party mistakes

    A wrong value repeated in two or more failures is taken as the company
    using the system. A single failure counts when it looks like a company name.

    Args:
        failures: Objects with a `predicted` attribute

    Returns:
        Company name, or None if no pattern is visible
    """
    if not failures:
        return None

    counts: dict[str, int] = {}
    for failure in failures:
        predicted = str(failure.predicted or "").strip()
        if predicted and predicted != NOT_PRESENT and len(predicted) > 2:
            counts[predicted] = counts.get(predicted, 0) + 1

    most_common = None
    max_count = 0
    for value, count in counts.items():
        if count > max_count:
            most_common, max_count = value, count
    if most_common and max_count >= 2:
        return most_common

    first = str(failures[0].predicted or "").strip()
    if first and _COMPANY_SUFFIX_RE.search(first):
        return first
    return None
