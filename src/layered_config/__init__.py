"""
layered-config public API.

File: src/layered_config/__init__.py

Purpose
- Export the schema declaration helpers, the ``load()`` entry point, the
  building blocks it composes and the public error types.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from layered_config.codecs import (
    FormatCodec,
    TomlCodec,
    YamlCodec,
    codec_for_format,
    codec_for_path,
    supported_extensions,
)
from layered_config.encryption import EncryptionAdapter, FernetEncryption
from layered_config.errors import (
    ConfigError,
    ConfigIoError,
    ConfigValidationError,
    DecodeError,
    EncodeError,
    EncryptionError,
    EnvFailure,
    EnvParseError,
    FieldIssue,
    FieldTypeError,
    MissingRequiredFieldError,
    SchemaDefinitionError,
    UnsupportedFormatError,
)
from layered_config.loader import (
    default_config_path,
    dump_effective_config,
    load,
    show_effective_config,
)
from layered_config.materializer import (
    FileEntry,
    FileState,
    MaterializeStatus,
    ensure_current,
    write_effective_config,
)
from layered_config.resolver import resolve
from layered_config.schema import (
    REQUIRED,
    FieldDescriptor,
    SchemaRegistry,
    SemanticType,
    describe,
    setting,
)
from layered_config.sources import CliSource, EnvSource, FileSource, parse_text
from layered_config.validation import (
    ConfigValidationResult,
    ValidationIssue,
    validate,
    validate_config,
)
from layered_config.values import (
    EffectiveConfig,
    PartialConfig,
    Provenance,
    SourcedValue,
    TypedValue,
)

__version__ = "0.1.0"

__all__ = [
    "REQUIRED",
    "CliSource",
    "ConfigError",
    "ConfigIoError",
    "ConfigValidationError",
    "ConfigValidationResult",
    "DecodeError",
    "EffectiveConfig",
    "EncodeError",
    "EncryptionAdapter",
    "EncryptionError",
    "EnvFailure",
    "EnvParseError",
    "EnvSource",
    "FernetEncryption",
    "FieldDescriptor",
    "FieldIssue",
    "FieldTypeError",
    "FileEntry",
    "FileSource",
    "FileState",
    "FormatCodec",
    "MaterializeStatus",
    "MissingRequiredFieldError",
    "PartialConfig",
    "Provenance",
    "SchemaDefinitionError",
    "SchemaRegistry",
    "SemanticType",
    "SourcedValue",
    "TomlCodec",
    "TypedValue",
    "UnsupportedFormatError",
    "ValidationIssue",
    "YamlCodec",
    "__version__",
    "codec_for_format",
    "codec_for_path",
    "default_config_path",
    "describe",
    "dump_effective_config",
    "ensure_current",
    "load",
    "parse_text",
    "resolve",
    "setting",
    "show_effective_config",
    "supported_extensions",
    "validate",
    "validate_config",
    "write_effective_config",
]
