"""HTTP event bridge: the glasses host forwards session events here.

RULES:
- app.py holds the FastAPI app and the process-wide runtime
- sessions.py holds the registry and the recording display/audio sinks
"""
