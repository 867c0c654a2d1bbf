"""mgnrega_pipeline.transforms — upstream record normalization."""
