# Routes package init
"""
Menu Service Backend: API Routes Package
=========================================

Route Inventory:
    - menu.py:      GET/POST /menu, GET/POST/DELETE /menu/{id}
    - images.py:    GET /images/{filename}
    - health.py:    GET /api, GET /health, GET / (without a frontend bundle)
    - frontend.py:  GET /{path} catch-all for the frontend bundle

Routes stay thin: extract request data, call MenuService, return the schema.
Errors are raised, never caught, and formatted by the handlers in main.py.
"""
