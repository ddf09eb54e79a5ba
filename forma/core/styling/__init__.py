from .aggregator import aggregate_classes, apply_styling_from_stack, apply_styling_with_options
from .loader import file_resource_loader, load_stack_from_settings, load_styling_stack, load_styling_system
from .models import ClassContribution, ContributionSource, ElementStyles, StylingSystem

__all__ = [
    "aggregate_classes",
    "apply_styling_from_stack",
    "apply_styling_with_options",
    "file_resource_loader",
    "load_stack_from_settings",
    "load_styling_stack",
    "load_styling_system",
    "ClassContribution",
    "ContributionSource",
    "ElementStyles",
    "StylingSystem",
]
