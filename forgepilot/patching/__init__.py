from .grammar import (
    EditInstruction, parse_edit_instructions, parse_instruction,
    is_edit_instruction, contains_edit_instructions, only_edit_instructions,
)
from .engine import PatchResult, apply_instructions, apply_edits_to_file, capture_original_content, format_edits_for_display

__all__ = [
    "EditInstruction", "parse_edit_instructions", "parse_instruction",
    "is_edit_instruction", "contains_edit_instructions", "only_edit_instructions",
    "PatchResult", "apply_instructions", "apply_edits_to_file",
    "capture_original_content", "format_edits_for_display",
]
