"""
Engine: scratch files, candidate evaluation and preset orchestration.

Import from the submodules (``pdfshrink.engine.orchestrator`` and so on);
the codec registry depends on ``engine.scratch``, so this package
re-exports nothing.
"""
