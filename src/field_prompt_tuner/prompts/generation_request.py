"""
Prompt generation requests

Builds the structured request sent to the prompt generator: the field, the
prompt under test, what went wrong, what worked, and the rules a new prompt
must follow. Also builds repair requests for prompts that failed validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from field_prompt_tuner.domain.constants import MIN_PROMPT_LENGTH, OPTION_FIELD_TYPES
from field_prompt_tuner.domain.entities import FailureExample, SuccessExample
from field_prompt_tuner.domain.value_objects import PromptValidation
from field_prompt_tuner.prompts.library import (
    get_example_prompt_for_field,
    get_field_specific_guidance,
    is_counter_party_field,
)
from field_prompt_tuner.prompts.validation import count_synonyms

MAX_FAILURES_SHOWN = 3
MAX_SUCCESSES_SHOWN = 2
MAX_PREVIOUS_SHOWN = 2
MAX_OPTIONS_SHOWN = 3


@dataclass
class PromptGenerationRequest:
    """Everything the prompt generator is told about one rewrite"""
    field_name: str
    field_type: str
    current_prompt: str
    previous_prompts: list[str] = field(default_factory=list)
    failure_examples: list[FailureExample] = field(default_factory=list)
    success_examples: list[SuccessExample] = field(default_factory=list)
    iteration: int = 1
    max_iterations: int = 5
    options: list[str] = field(default_factory=list)
    company_name: str | None = None
    document_type: str | None = None
    template_key: str | None = None
    custom_instructions: str | None = None
    document_context: str | None = None
    # Set on repair requests: the candidate that failed validation
    repair_of: str | None = None
    validation: PromptValidation | None = None

    @property
    def is_repair(self) -> bool:
        return self.repair_of is not None and self.validation is not None


def truncate(text: str | None, max_length: int) -> str:
    if not text:
        return ""
    return text[:max_length] + "..." if len(text) > max_length else text


def _document_type_section(request: PromptGenerationRequest) -> str:
    if not request.document_type and not request.template_key:
        return ""
    label = request.document_type or "this document type"
    lines = ["## DOCUMENT TYPE CONTEXT"]
    if request.document_type:
        lines.append(f"Document Type: {request.document_type}")
    if request.template_key:
        lines.append(f'Template: "{request.template_key}"')
    lines.extend([
        "",
        f"CRITICAL: You are writing extraction prompts for {label} documents.",
        f"Use your knowledge of how {label} documents are structured to determine:",
        f'1. WHERE "{request.field_name}" typically appears',
        "2. WHAT terminology and labels are commonly used",
        "3. WHAT sections or areas to search",
        "",
        "Do NOT use terminology from other document types (invoice terms for contracts or the reverse).",
        "",
    ])
    return "\n".join(lines) + "\n"


def build_generation_prompt(request: PromptGenerationRequest) -> str:
    """
    Build the rewrite request text for the prompt generator

    Args:
        request: Rewrite request

    Returns:
        Prompt text asking for a JSON {"newPrompt", "reasoning"} answer
    """
    if request.is_repair:
        return build_repair_prompt(request.repair_of, request.validation, request.field_name, request.field_type)

    counter_party_company = request.company_name if is_counter_party_field(request.field_name) else None
    current = request.current_prompt or f"Extract the {request.field_name}"
    parts: list[str] = [_document_type_section(request)]

    if request.custom_instructions:
        parts.append(request.custom_instructions)
        parts.append("")
        parts.append("## FIELD TO OPTIMIZE")
        parts.append(f'Field: "{request.field_name}" (type: {request.field_type})')
    else:
        example = get_example_prompt_for_field(
            request.field_name, request.field_type, request.options, counter_party_company,
        )
        parts.append("You are an expert at writing extraction prompts for document AI systems.")
        parts.append("")
        parts.append("## YOUR TASK")
        parts.append(f'Create a DETAILED extraction prompt for the field "{request.field_name}" (type: {request.field_type}).')
        if request.document_type:
            parts.append(f"Remember: This is for {request.document_type} documents - use appropriate terminology.")
        parts.append("")
        parts.append("## EXAMPLE OF A HIGH-QUALITY PROMPT STRUCTURE")
        parts.append(f'"{example}"')
        parts.append("")
        parts.append("Notice how the example says WHERE to look, lists SPECIFIC phrases, fixes the EXACT output "
                     "format, says what NOT to extract and handles the not-found case.")
    parts.append("")
    parts.append("## CURRENT PROMPT (NOT WORKING WELL)")
    parts.append(f'"{current}"')

    if request.failure_examples:
        parts.append("")
        parts.append("## FAILURES TO FIX")
        for index, example in enumerate(request.failure_examples[:MAX_FAILURES_SHOWN], start=1):
            parts.append(f'{index}. AI returned: "{truncate(example.predicted, 80)}"')
            parts.append(f'   Should be: "{truncate(example.expected, 80)}"')
        parts.append("")
        parts.append("Analyze WHY these failed. Common causes: wrong section, missing synonyms, format mismatch.")

    if request.document_context:
        parts.append(request.document_context)

    if request.success_examples:
        parts.append("")
        parts.append("## SUCCESSES (what's working)")
        parts.append(", ".join(
            f'"{truncate(example.value, 60)}"' for example in request.success_examples[:MAX_SUCCESSES_SHOWN]
        ))

    if request.field_type in OPTION_FIELD_TYPES and request.options:
        sample = ", ".join(request.options[:MAX_OPTIONS_SHOWN])
        if len(request.options) > MAX_OPTIONS_SHOWN:
            sample += ", ..."
        parts.append("")
        parts.append("## DROPDOWN/ENUM FIELD GUIDANCE")
        parts.append(f"This is a dropdown field with predefined options (examples: {sample}).")
        parts.append("The generated prompt should:")
        parts.append("- Instruct the AI to return EXACTLY one value from the available options")
        parts.append("- Not list every option value (they are provided at extraction time)")
        parts.append("- Tell the AI to match document content to the closest available option")

    if counter_party_company:
        parts.append("")
        parts.append("## CRITICAL: COMPANY TO EXCLUDE")
        parts.append(f'"{counter_party_company}" is the company USING this software and is a party to every agreement.')
        parts.append(f'The COUNTER PARTY is the OTHER company. The prompt MUST tell the AI to exclude "{counter_party_company}".')

    if request.previous_prompts and request.iteration > 1:
        parts.append("")
        parts.append("## PREVIOUS ATTEMPTS (didn't achieve 100%)")
        for index, previous in enumerate(request.previous_prompts[-MAX_PREVIOUS_SHOWN:], start=1):
            parts.append(f'{index}. "{truncate(previous, 100)}"')
        parts.append("Try a DIFFERENT approach than these.")

    guidance = get_field_specific_guidance(request.field_name, request.field_type)
    if guidance:
        parts.append("")
        parts.append("## FIELD-SPECIFIC GUIDANCE")
        parts.append(guidance.rstrip("\n"))

    if request.iteration >= 3:
        parts.append("")
        parts.append(
            f"ITERATION {request.iteration}/{request.max_iterations} - Previous approaches failed. "
            "Try something significantly different!"
        )

    parts.extend([
        "",
        "## REQUIREMENTS FOR YOUR NEW PROMPT",
        f'1. Be SPECIFIC - don\'t just say "Extract the {request.field_name}"',
        "2. Tell the AI WHERE to look (which sections of the document)",
        "3. List SYNONYM phrases in quotes that the value might appear as",
        "4. Specify the EXACT output format (date format, case, precision)",
        '5. Add "Do NOT..." guidance to prevent common mistakes',
        '6. Handle the "not found" case explicitly',
        f"7. Use at least {MIN_PROMPT_LENGTH} characters",
        "",
        "## CRITICAL: RESPOND WITH VALID JSON ONLY",
        '{"newPrompt": "your detailed extraction prompt here", "reasoning": "why this will fix the failures"}',
        "",
        "Do NOT include any text before or after the JSON. Do NOT use markdown code blocks.",
    ])
    return "\n".join(parts).lstrip("\n")


def build_repair_prompt(
    original_prompt: str,
    validation: PromptValidation,
    field_name: str,
    field_type: str,
) -> str:
    """
    Build a request to fix the specific rules a prompt violated

    Args:
        original_prompt: Prompt that failed validation
        validation: Its validation result
        field_name: Field name for context
        field_type: Field type for context

    Returns:
        Repair request text
    """
    parts: list[str] = [
        "You generated an extraction prompt that has quality issues. Fix them.",
        "",
        "## ORIGINAL PROMPT",
        f'"{original_prompt}"',
        "",
        "## ISSUES TO FIX",
    ]
    parts.extend(f"{index}. {error}" for index, error in enumerate(validation.errors, start=1))
    parts.append("")
    parts.append("## REQUIREMENTS")
    parts.append("The prompt MUST include:")
    if not validation.has_location:
        parts.append('- LOCATION: Specific document sections (e.g., "opening paragraph", "signature blocks", "Notices section")')
    if not validation.has_synonyms:
        parts.append(
            f"- SYNONYMS: At least 6 distinct phrases IN QUOTES (current: {count_synonyms(original_prompt)})"
        )
    if not validation.has_format:
        parts.append('- FORMAT: Concrete output specification (e.g., "YYYY-MM-DD format")')
    if not validation.has_disambiguation:
        parts.append('- DISAMBIGUATION: "Do NOT..." guidance to prevent mistakes')
    if not validation.has_not_found:
        parts.append('- NOT-FOUND: What to return if the value is not found (usually "Not Present")')
    if validation.length < MIN_PROMPT_LENGTH:
        parts.append(f"- LENGTH: At least {MIN_PROMPT_LENGTH} characters (current: {validation.length})")
    parts.extend([
        "",
        "## FIELD INFO",
        f'Field: "{field_name}" (type: {field_type})',
        "",
        "## OUTPUT",
        "Return ONLY valid JSON:",
        '{"newPrompt": "your fixed prompt here", "reasoning": "what you fixed"}',
    ])
    return "\n".join(parts)
