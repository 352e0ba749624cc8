"""
JSON API for the agile dashboard.

Serves the live snapshot kept by a SyncService and forwards mutations to
it. Every data endpoint answers 503 while no backend is configured.

API Endpoints:
- GET /api/snapshot - Users, sprints, work items and the selected sprint
- GET/POST/PATCH/DELETE /api/items - Backlog and board
- GET/POST/PATCH/DELETE /api/sprints - Sprints and the selection
- GET/POST/DELETE /api/users - Team members
- GET /api/board, /api/reports/* - Read-only roll-ups

Usage:
    # Run the server
    uvicorn agileboard.api.app:app --reload

    # Or from Python
    from agileboard.api.app import create_app
    app = create_app(service)
"""

from agileboard.api.app import app, create_app

__all__ = ["app", "create_app"]
