"""
Prompts sub-package

Provides the prompt library, generation and repair requests, the validation
checklist and the tolerant response parser.
"""

from field_prompt_tuner.prompts.generation_request import (
    PromptGenerationRequest,
    build_generation_prompt,
    build_repair_prompt,
)
from field_prompt_tuner.prompts.library import (
    detect_common_company,
    get_example_prompt_for_field,
    get_field_specific_guidance,
    infer_document_type,
    is_counter_party_field,
    is_simple_prompt,
)
from field_prompt_tuner.prompts.response_parser import parse_prompt_response
from field_prompt_tuner.prompts.validation import validate_prompt

__all__ = [
    # requests
    "PromptGenerationRequest",
    "build_generation_prompt",
    "build_repair_prompt",
    # library
    "detect_common_company",
    "get_example_prompt_for_field",
    "get_field_specific_guidance",
    "infer_document_type",
    "is_counter_party_field",
    "is_simple_prompt",
    # parsing and validation
    "parse_prompt_response",
    "validate_prompt",
]
