from .registry import (
    TokenLookup,
    TokenRegistry,
    build_token_registry,
    detect_token_patterns,
    reconstruct_token_references,
    reverse_lookup_token,
)

__all__ = [
    "TokenLookup",
    "TokenRegistry",
    "build_token_registry",
    "detect_token_patterns",
    "reconstruct_token_references",
    "reverse_lookup_token",
]
