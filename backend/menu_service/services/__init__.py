# Services package init
"""
Menu Service Backend: Services Layer
=====================================

Service Inventory:
    - ImageStorage: upload validation, naming, disk I/O and removal
    - MenuService:  list/get/create/update/delete over MenuStore + ImageStorage

Both are plain objects built in ``main.create_app`` and kept on
``app.state``; they hold no per-request state.
"""
