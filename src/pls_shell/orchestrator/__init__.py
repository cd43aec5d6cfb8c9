"""Task orchestration: the workflow state machine, its stages and the router.

The workflow owns exactly one Active stage. Stages report back through the
workflow (complete, abort, error) and never touch each other directly; the
router is the only place that decides which stages follow which tasks.
"""
