"""CaseCoach Application Package — identity lifecycle and interview-analysis pipeline.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
