"""UI module."""

from .overlay import coaching_lines, draw_guide, guide_mask

__all__ = ["coaching_lines", "draw_guide", "guide_mask"]
