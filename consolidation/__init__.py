"""
Change-event consolidation components.

Modules:
    cooldown: Pure cooldown policy (should_run)
    merge: Last-write-wins merge engine over a staging / latest-state table pair
    ledger: Run ledger with single-flight RUNNING marker and run history
    orchestrator: Cooldown-gated, single-flight sync runs
    scheduler: APScheduler interval trigger
    staging: Staging table writer
    cache: Dashboard stats cache invalidated by successful runs

Architecture:
    Every trigger (HTTP poll, manual HTTP, scheduler, script) calls
    SyncOrchestrator.run(), which:
    
    1. Reads the ledger and applies the cooldown policy
    2. Takes the RUNNING marker with an atomic conditional update that
       re-checks the cooldown
    3. Runs one merge pass inside a single transaction
    4. Records SUCCEEDED / FAILED and invalidates cached stats

Example:
    engine = create_engine_from_settings()
    session_factory = create_session_factory(engine)
    
    orchestrator = SyncOrchestrator(
        ledger=RunLedger(session_factory),
        merge_engine=MergeEngine(session_factory),
        cache=StatsCache(session_factory)
    )
    
    outcome = await orchestrator.run()
    print(outcome.message)
"""

__all__ = [
    "should_run",
    "MergeEngine",
    "RunLedger",
    "SyncOrchestrator",
    "SyncScheduler",
    "StagingWriter",
    "StatsCache",
]
