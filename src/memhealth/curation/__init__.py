"""Text splicing, token budgets, health aggregation, analysis and curation."""
