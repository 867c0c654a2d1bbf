"""mgnrega_pipeline.utils — logging and retry helpers."""
