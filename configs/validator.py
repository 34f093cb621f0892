"""Configuration validation using JSON Schema."""

from __future__ import annotations

import copy
from typing import Any, Dict

import jsonschema
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

_OVERLAYS = ["trapezoid", "ring", "circle", "rectangle", "oval", "none"]

_UNIT_PAIR = {
    "type": "array",
    "items": {"type": "number", "minimum": 0.0, "maximum": 1.0},
    "minItems": 2,
    "maxItems": 2,
}

# JSON Schema for default.yaml configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "camera": {
            "type": "object",
            "default": {},
            "properties": {
                "index": {"type": "integer", "minimum": 0, "default": 0},
                "width": {"type": "integer", "minimum": 160, "maximum": 7680, "default": 1280},
                "height": {"type": "integer", "minimum": 120, "maximum": 4320, "default": 720},
                "fps": {"type": "integer", "minimum": 1, "maximum": 240, "default": 30},
                "analysis_width": {"type": "integer", "minimum": 64, "maximum": 1280, "default": 320},
                "open_timeout_s": {"type": "number", "exclusiveMinimum": 0},
                "read_timeout_ms": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": False,
        },
        "analyzer": {
            "type": "object",
            "default": {},
            "properties": {
                "sharpness_threshold": {"type": "number", "minimum": 0},
                "exposure_mean_min": {"type": "number", "minimum": 0, "maximum": 255},
                "exposure_mean_max": {"type": "number", "minimum": 0, "maximum": 255},
                "exposure_variance_min": {"type": "number", "minimum": 0},
                "glare_channel_threshold": {"type": "integer", "minimum": 0, "maximum": 255},
                "glare_fraction_max": {"type": "number", "minimum": 0, "maximum": 1},
                "runtime_budget_ms": {"type": "number", "exclusiveMinimum": 0},
            },
            "additionalProperties": False,
        },
        "subject": {
            "type": "object",
            "default": {},
            "properties": {
                "ring_center": _UNIT_PAIR,
                "ring_radii": _UNIT_PAIR,
                "ring_threshold": {"type": "number", "minimum": 0, "maximum": 1},
                "oval_center": _UNIT_PAIR,
                "oval_radii": _UNIT_PAIR,
                "oval_threshold": {"type": "number", "minimum": 0, "maximum": 1},
                "oval_coverage_threshold": {"type": "number", "minimum": 0, "maximum": 1},
                "generic_sharpness_threshold": {"type": "number", "minimum": 0},
            },
            "additionalProperties": False,
        },
        "level": {
            "type": "object",
            "default": {},
            "properties": {
                "max_roll_deg": {"type": "number", "exclusiveMinimum": 0, "maximum": 90},
                "level_required_overlays": {
                    "type": "array",
                    "items": {"type": "string", "enum": _OVERLAYS},
                },
            },
            "additionalProperties": False,
        },
        "gate": {
            "type": "object",
            "default": {},
            "properties": {
                "dwell_ms": {"type": "number", "minimum": 0, "maximum": 10000},
                "countdown_s": {"type": "integer", "minimum": 0, "maximum": 10},
                "abort_countdown_on_fail": {"type": "boolean"},
                "manual_requires_ready": {"type": "boolean"},
            },
            "additionalProperties": False,
        },
        "capture": {
            "type": "object",
            "default": {},
            "properties": {
                "jpeg_quality": {"type": "integer", "minimum": 1, "maximum": 100},
                "preview_quality": {"type": "integer", "minimum": 1, "maximum": 100},
                "preview_max_width": {"type": "integer", "minimum": 32},
                "async_encode": {"type": "boolean"},
                "encode_budget_ms": {"type": "number", "exclusiveMinimum": 0},
            },
            "additionalProperties": False,
        },
        "detector": {
            "type": "object",
            "default": {},
            "properties": {
                "type": {"type": "string", "enum": ["pixel", "ml"], "default": "pixel"},
                "model_path": {"type": ["string", "null"]},
                "model_input_size": {
                    "type": "array",
                    "items": {"type": "integer", "minimum": 32},
                    "minItems": 2,
                    "maxItems": 2,
                },
                "model_conf_threshold": {"type": "number", "minimum": 0, "maximum": 1},
                "model_class_id": {"type": "integer", "minimum": 0},
                "model_format": {"type": "string", "enum": ["yolo_v5", "yolo_v8"]},
            },
            "additionalProperties": False,
        },
        "session": {
            "type": "object",
            "default": {},
            "properties": {
                "steps": {
                    "type": "array",
                    "items": {"type": "string", "minLength": 1},
                    "minItems": 1,
                },
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


def extend_with_default(validator_class):
    """Extend validator to set default values from schema."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        if isinstance(instance, dict):
            for prop, subschema in properties.items():
                if "default" in subschema:
                    instance.setdefault(prop, copy.deepcopy(subschema["default"]))

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration against JSON Schema.

    Args:
        config: Configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    try:
        validator = DefaultValidatingValidator(CONFIG_SCHEMA)
        errors = list(validator.iter_errors(config))

        if errors:
            error_messages = []
            for error in errors:
                path = " -> ".join(str(p) for p in error.path) if error.path else "root"
                error_messages.append(f"{path}: {error.message}")

            logger.error(f"Configuration validation failed with {len(errors)} errors")
            for msg in error_messages:
                logger.error(f"  - {msg}")

            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s). See logs for details.",
                validation_errors=error_messages,
            )

        analyzer = config.get("analyzer", {})
        low = analyzer.get("exposure_mean_min")
        high = analyzer.get("exposure_mean_max")
        if low is not None and high is not None and low >= high:
            raise ConfigValidationError(
                "analyzer.exposure_mean_min must be below analyzer.exposure_mean_max",
                validation_errors=[f"analyzer: exposure band [{low}, {high}] is empty"],
            )

        logger.info("Configuration validation passed")

    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")


__all__ = ["validate_config", "CONFIG_SCHEMA"]
