"""
tts-bridge HTTP API.

    routes.py        - Endpoint definitions
    streaming.py     - Chunked audio response driven by the synthesis bridge
    schemas.py       - Pydantic request/response models
    dependencies.py  - Settings and service providers
"""
