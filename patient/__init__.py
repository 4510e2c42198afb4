"""
Simulated therapy patient relay.

Modules:
- responder: prompt building + ordered model fallback + canned lines
- pacing: word-by-word timed playback of a finished reply
- diagnostics: connectivity probe over the candidate models
- core.personas / core.rotation: persona table and fallback cursors
"""
