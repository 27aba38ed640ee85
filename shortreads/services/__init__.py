"""Service layer.

Modules are imported by callers directly (``from shortreads.services import
stories_service``); nothing is re-exported here so that ``utils`` can depend
on individual services without import cycles.
"""
