"""Brand-mention scoring pipeline.

Components:
  1. Occurrence finder (occurrence.py): token positions of entity mentions
  2. Visibility & share calculator (scoring.py)
  3. Citation classifier (citation_classifier.py): cache → table → heuristics → AI
  4. Sentiment analyzer (sentiment.py): prioritized provider chain
  5. Consolidated analysis (consolidated.py): one LLM call for 1, 3 and 4
  6. Scoring orchestrator (orchestrator.py): batch processing with fallbacks
"""
