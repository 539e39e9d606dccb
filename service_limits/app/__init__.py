"""
Limits Service package.

Decides whether a player may register another block protection. It
provides:

- app.main: API surface for limit checks, reloads and health.
- app.limits: Limit model, configuration loader, resolver and admission check.
- app.persistence: PostgreSQL protection counts.
- app.groups: Group membership lookups against the permissions service.

Guidelines:
- Limits are held as an immutable snapshot; reloads swap it atomically.
- Missing configuration never denies a protection.
- Store failures surface as errors rather than guessed verdicts.
"""
