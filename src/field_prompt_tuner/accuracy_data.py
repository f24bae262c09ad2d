"""
Accuracy Data Loader

Loads previously measured extraction results (per document, per field, per
model) and their recorded comparisons from JSON files.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from field_prompt_tuner.domain.constants import COMPARE_TYPES, GROUND_TRUTH_COLUMN
from field_prompt_tuner.domain.value_objects import CompareConfig


@dataclass
class FieldDefinition:
    """Metadata field of a document template"""
    key: str
    name: str
    type: str = "string"
    prompt: str | None = None
    options: list[str] = field(default_factory=list)


@dataclass
class RecordedComparison:
    """Comparison stored alongside earlier extraction results"""
    is_match: bool
    details: str = ""


@dataclass
class FieldAverages:
    """Average metrics of one field for one model"""
    accuracy: float = 0.0
    precision: float = 0.0
    recall: float = 0.0
    f1: float = 0.0


@dataclass
class DocumentResult:
    """Extraction results for one document"""
    id: str
    file_name: str
    file_type: str = ""
    # field key -> column (model name or "Ground Truth") -> value
    fields: dict[str, dict[str, str]] = field(default_factory=dict)
    # field key -> model name -> comparison
    comparison_results: dict[str, dict[str, RecordedComparison]] = field(default_factory=dict)

    def ground_truth(self, field_key: str) -> str:
        return self.fields.get(field_key, {}).get(GROUND_TRUTH_COLUMN) or ""

    def extracted_value(self, field_key: str, model: str) -> str:
        return self.fields.get(field_key, {}).get(model) or ""


@dataclass
class AccuracyData:
    """Accuracy measurements for one document template"""
    template_key: str
    fields: list[FieldDefinition]
    results: list[DocumentResult]
    averages: dict[str, dict[str, FieldAverages]] = field(default_factory=dict)
    base_model: str | None = None
    compare_configs: dict[str, CompareConfig] = field(default_factory=dict)

    def field_by_key(self, field_key: str) -> FieldDefinition | None:
        return next((f for f in self.fields if f.key == field_key), None)

    @property
    def document_ids(self) -> list[str]:
        return [r.id for r in self.results]


def _parse_options(raw_options: list | None) -> list[str]:
    options = []
    for option in raw_options or []:
        if isinstance(option, dict):
            options.append(str(option.get("key", "")))
        else:
            options.append(str(option))
    return [o for o in options if o]


def _parse_field_data(data: dict) -> FieldDefinition:
    return FieldDefinition(
        key=data["key"],
        name=data.get("name") or data.get("displayName") or data["key"],
        type=data.get("type", "string"),
        prompt=data.get("prompt"),
        options=_parse_options(data.get("options")),
    )


def _parse_document_data(data: dict) -> DocumentResult:
    fields = {
        field_key: {column: "" if value is None else str(value) for column, value in columns.items()}
        for field_key, columns in (data.get("fields") or {}).items()
    }
    comparison_results = {
        field_key: {
            model: RecordedComparison(
                is_match=bool(meta.get("isMatch", False)),
                details=meta.get("details") or "",
            )
            for model, meta in models.items()
            if meta is not None
        }
        for field_key, models in (data.get("comparisonResults") or {}).items()
    }
    return DocumentResult(
        id=str(data["id"]),
        file_name=data.get("fileName") or str(data["id"]),
        file_type=data.get("fileType", ""),
        fields=fields,
        comparison_results=comparison_results,
    )


def _parse_compare_config(field_key: str, data: dict, field_name: str) -> CompareConfig:
    compare_type = data["compareType"]
    if compare_type not in COMPARE_TYPES:
        raise ValueError(f"Invalid compare type for field '{field_key}': {compare_type}. Valid values: {COMPARE_TYPES}")
    return CompareConfig(
        field_key=field_key,
        field_name=data.get("fieldName") or field_name,
        compare_type=compare_type,
        parameters=dict(data.get("parameters") or {}),
    )


def parse_accuracy_data(data: dict) -> AccuracyData:
    """
    Create an AccuracyData object from dictionary data

    Args:
        data: Accuracy data dictionary (camelCase keys)

    Returns:
        AccuracyData

    Raises:
        KeyError: If a required field is missing
        ValueError: If a compare configuration names an unknown compare type
    """
    required_fields = ["templateKey", "fields", "results"]
    for required in required_fields:
        if required not in data:
            raise KeyError(f"Required field '{required}' is missing")

    fields = [_parse_field_data(f) for f in data["fields"]]
    names = {f.key: f.name for f in fields}

    averages = {
        field_key: {
            model: FieldAverages(
                accuracy=float(metrics.get("accuracy", 0.0)),
                precision=float(metrics.get("precision", 0.0)),
                recall=float(metrics.get("recall", 0.0)),
                f1=float(metrics.get("f1", metrics.get("f1Score", 0.0))),
            )
            for model, metrics in models.items()
        }
        for field_key, models in (data.get("averages") or {}).items()
    }

    compare_configs = {
        field_key: _parse_compare_config(field_key, config, names.get(field_key, field_key))
        for field_key, config in (data.get("compareConfigs") or {}).items()
    }

    return AccuracyData(
        template_key=data["templateKey"],
        fields=fields,
        results=[_parse_document_data(r) for r in data["results"]],
        averages=averages,
        base_model=data.get("baseModel"),
        compare_configs=compare_configs,
    )


def load_accuracy_data(file_path: str | Path) -> AccuracyData:
    """
    Load accuracy data from a JSON file

    Args:
        file_path: Path to the JSON file

    Returns:
        AccuracyData

    Raises:
        FileNotFoundError: If the file does not exist
        KeyError: If a required field is missing
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Accuracy data file not found: {file_path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return parse_accuracy_data(data)
