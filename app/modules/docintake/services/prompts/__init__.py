# Prompt builders for the intake and drafting engine.

from .system_prompt import SYSTEM_INSTRUCTION
from .extraction import build_extraction_prompt
from .drafting import build_clause_prompt

__all__ = ["SYSTEM_INSTRUCTION", "build_extraction_prompt", "build_clause_prompt"]
