"""Core business logic.

Modules:
- spaced_repetition: Glossary review scheduling and statistics
- technique_timer: Timed reset flow (setup -> practice -> reflection)
- preferences: Per-user reset preferences and session history
- insights: Reflection, reset, emotion and workload aggregates
- pattern_detection: Behaviour patterns and supportive nudges
- ceu_tracker: Certification expiration and CEU progress
- site_audit: Accessibility/SEO audit of a running site
"""

__all__ = [
    "spaced_repetition",
    "technique_timer",
    "preferences",
    "insights",
    "pattern_detection",
    "ceu_tracker",
    "site_audit",
]
