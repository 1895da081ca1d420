"""
AIGuide: iterative model and prompt recommendation service.

This package contains:
- settings: configuration read from the environment / .env
- logging_config: shared logging setup
- upstream: chat-completion client (blocking and streaming)
- intent: feedback intent classification
- recommendation: {model, prompt} extraction from model output
- storage: session store
- services: session lifecycle state machine
- routes: FastAPI app factory; api/: HTTP and SSE endpoints
"""
