"""
The relay core.

- **relay_pipeline**: Per-message gating, translation, fan-out and accounting
- **platform**: The chat platform seam and the ``Notice`` value type
- **notices**: Builders for member and mod-log notices
"""
