"""Brand-mention scoring pipeline.

Turns raw AI-generated answers into brand intelligence signals:
mention positions, visibility index, share of answers, sentiment and
categorized citation sources.
"""

__version__ = "1.0.0"
