"""Tests for prompt generator response parsing"""

from field_prompt_tuner.prompts.response_parser import parse_prompt_response


class TestParsePromptResponse:
    def test_direct_json(self):
        result = parse_prompt_response('{"newPrompt": "  Look in the header.  ", "reasoning": "Adds location"}')
        assert result.new_prompt == "Look in the header."
        assert result.reasoning == "Adds location"

    def test_alternate_keys(self):
        result = parse_prompt_response('{"new_prompt": "Look in the footer.", "reason": "Moved"}')
        assert result.new_prompt == "Look in the footer."
        assert result.reasoning == "Moved"

    def test_missing_reasoning(self):
        assert parse_prompt_response('{"prompt": "P"}').reasoning == "No reasoning provided"

    def test_fenced_json(self):
        response = 'Here is the prompt:\n```json\n{"newPrompt": "Fenced prompt", "reasoning": "R"}\n```\nDone.'
        result = parse_prompt_response(response)
        assert result.new_prompt == "Fenced prompt"
        assert result.reasoning == "R"

    def test_embedded_value_in_broken_json(self):
        response = 'Sure! {"newPrompt": "Look for \\"Effective Date\\" labels", "reasoning": "quotes'
        result = parse_prompt_response(response)
        assert result.new_prompt == 'Look for "Effective Date" labels'
        assert result.reasoning == "Extracted from text"

    def test_plain_text(self):
        result = parse_prompt_response("  Just use this prompt as written.  ")
        assert result.new_prompt == "Just use this prompt as written."
        assert result.reasoning == "Used raw response text"

    def test_json_without_prompt_key(self):
        result = parse_prompt_response('{"answer": "x"}')
        assert result.new_prompt == '{"answer": "x"}'

    def test_none(self):
        assert parse_prompt_response(None).new_prompt == ""
