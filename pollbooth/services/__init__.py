"""Booth lifecycle and voting engine.

Routes stay thin: they resolve identity and payloads, then call into these
modules. Every mutation here owns its transaction (commit on success, rollback
on any error) and raises ``pollbooth.exceptions`` errors for rejected requests.
"""
