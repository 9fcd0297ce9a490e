"""STE: a small HTML template engine with filters, includes and raw-HTML variables."""

from .config import EngineConfig
from .engine import TemplateEngine
from .escape import SafeString
from .evaluator import evaluate
from .lexer import tokenize
from .parser import ParseError, parse, parse_source
from .runtime import register_filter
from .types import (
    CycleRegistry,
    EvaluationError,
    EvaluatorState,
    FileError,
    PathSecurityError,
    TemplateError,
    TemplateSyntaxError,
)

__version__ = "0.1.0"

__all__ = [
    "CycleRegistry",
    "EngineConfig",
    "EvaluationError",
    "EvaluatorState",
    "FileError",
    "ParseError",
    "PathSecurityError",
    "SafeString",
    "TemplateEngine",
    "TemplateError",
    "TemplateSyntaxError",
    "evaluate",
    "parse",
    "parse_source",
    "register_filter",
    "tokenize",
]
