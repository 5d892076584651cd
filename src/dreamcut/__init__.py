"""DreamCut Analyzer.

Turns a free-form creative request plus its media attachments into a single,
schema-validated production plan. The work happens in four sequential stages:

1. Query analysis (intent, modifiers, constraints, gaps)
2. Asset analysis (one concurrent analysis per attachment)
3. Combination synthesis (unified project understanding)
4. Output assembly (the final document)

Example:
    >>> from dreamcut.pipeline import run_pipeline
    >>> result = run_pipeline("make a 30s product teaser, 16:9, energetic mood", [])
    >>> print(result.output.analysis_metadata.completion_status)
"""

__version__ = "2.0.0"
PIPELINE_VERSION = __version__
