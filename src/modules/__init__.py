"""
Feature modules for the First/Last scoring engine.

Each subpackage owns one domain: ``ledger`` (first messages and last-message
resolution), ``scoring`` (point table and the daily pipeline),
``leaderboard``, ``history``, ``flair``, ``analytics`` and ``sheets``.
Packages carrying a ``cog.py`` are discovered and loaded by the bot's
FeatureLoader.
"""
