"""
Bristol Bay salmon harvest scraper package.

The modules expose:
    - districts: Canonical district ids, names and label matching.
    - seasons: Run-date formatting and season date ranges.
    - models: Pydantic records produced by the extractor.
    - parser: Number normalization and table classification/parsing.
    - selectors: Page selectors for the ADF&G harvest page.
    - browser: Playwright helpers for consistent browser automation.
    - extractor: The per-date page interaction.
    - storage: SQLAlchemy models and database helpers.
    - cache: Single-slot TTL cache for the latest record.
    - job: Backfill orchestration tying the above together.
"""

__all__ = ["districts", "seasons", "models", "parser", "selectors", "browser", "extractor", "storage", "cache", "job"]
