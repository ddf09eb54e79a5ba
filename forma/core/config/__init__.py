from .precedence import (
    DEFAULT_PRECEDENCE,
    PrecedenceConfig,
    Scope,
    build_precedence_context,
    get_styling_options,
    resolve_option,
    resolve_options,
)
from .settings import FormaSettings, load_settings

__all__ = [
    "DEFAULT_PRECEDENCE",
    "PrecedenceConfig",
    "Scope",
    "build_precedence_context",
    "get_styling_options",
    "resolve_option",
    "resolve_options",
    "FormaSettings",
    "load_settings",
]
