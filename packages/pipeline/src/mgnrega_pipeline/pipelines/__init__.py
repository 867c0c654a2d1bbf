"""
mgnrega_pipeline.pipelines — sync orchestration.

    from mgnrega_pipeline.pipelines.sync import SyncOrchestrator, SyncRequest, run_sync

    result = await SyncOrchestrator(store).sync_current()
"""
