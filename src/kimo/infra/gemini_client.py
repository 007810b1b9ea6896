"""Gemini model factory for the extraction agent."""

import copy

import google.generativeai as genai

from kimo.app.config import get_settings


# JSON Schema keywords Gemini's response_schema rejects
_UNSUPPORTED_KEYS = {
    "$defs", "definitions", "title", "default", "examples",
    "additionalProperties", "maximum", "minimum", "exclusiveMaximum",
    "exclusiveMinimum", "maxLength", "minLength", "pattern",
}


def clean_schema(schema: dict) -> dict:
    """Inline $ref definitions and strip keywords Gemini does not accept.

    Pydantic v2 emits ``$defs`` for nested models and enums; Gemini wants
    a single self-contained object schema.
    """
    schema = copy.deepcopy(schema)
    defs = schema.pop("$defs", None) or schema.pop("definitions", None)

    def _resolve(node):
        if isinstance(node, dict):
            if "$ref" in node:
                ref_name = node["$ref"].rsplit("/", 1)[-1]
                if defs and ref_name in defs:
                    return _resolve(copy.deepcopy(defs[ref_name]))
                return node
            # Optional[...] renders as anyOf [X, null]; keep X
            if "anyOf" in node:
                options = [o for o in node["anyOf"] if o.get("type") != "null"]
                if len(options) == 1:
                    merged = {k: v for k, v in node.items() if k != "anyOf"}
                    merged.update(options[0])
                    merged["nullable"] = True
                    node = merged
            for key in _UNSUPPORTED_KEYS:
                node.pop(key, None)
            for key, value in list(node.items()):
                node[key] = _resolve(value)
        elif isinstance(node, list):
            for i, item in enumerate(node):
                node[i] = _resolve(item)
        return node

    return _resolve(schema)


def get_model(
    model_name: str | None = None,
    temperature: float = 0.1,
    json_mode: bool = False,
    response_schema: dict | None = None,
    system_instruction: str | None = None,
):
    """Return a configured Gemini GenerativeModel instance.

    Args:
        model_name: Gemini model identifier; defaults to ``settings.gemini_model``.
        temperature: Generation temperature.
        json_mode: If True, constrain output to valid JSON.
        response_schema: Optional JSON Schema dict for structured output.
        system_instruction: Optional system-level instruction.
    """
    settings = get_settings()
    genai.configure(api_key=settings.gemini_api_key)

    generation_config = {"temperature": temperature}
    if json_mode:
        generation_config["response_mime_type"] = "application/json"
        if response_schema:
            generation_config["response_schema"] = clean_schema(response_schema)

    return genai.GenerativeModel(
        model_name=model_name or settings.gemini_model,
        generation_config=generation_config,
        system_instruction=system_instruction,
    )
