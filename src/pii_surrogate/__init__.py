"""pii-surrogate — replace PII in documents with consistent, format-preserving fakes."""

from .config import RedactorConfig, ScoringWeights, create_redactor, load_config, load_from_yaml
from .consistency import ConsistencyCache
from .document import HtmlDocument, PlainTextDocument, TextSurface
from .errors import (
    ConfigError,
    FatalInitializationError,
    InvalidCustomPatternError,
    PiiSurrogateError,
    SkipReason,
)
from .lexicon import Lexicon
from .redactor import RedactedText, RedactionSession, Redactor
from .types import (
    Candidate,
    Entity,
    EntitySummary,
    Occurrence,
    PiiType,
    ProtectionResult,
    TextSegment,
    normalize,
)

__all__ = [
    "Candidate",
    "ConfigError",
    "ConsistencyCache",
    "Entity",
    "EntitySummary",
    "FatalInitializationError",
    "HtmlDocument",
    "InvalidCustomPatternError",
    "Lexicon",
    "Occurrence",
    "PiiSurrogateError",
    "PiiType",
    "PlainTextDocument",
    "ProtectionResult",
    "RedactedText",
    "RedactionSession",
    "Redactor",
    "RedactorConfig",
    "ScoringWeights",
    "SkipReason",
    "TextSegment",
    "TextSurface",
    "create_redactor",
    "load_config",
    "load_from_yaml",
    "normalize",
]
__version__ = "0.1.0"
