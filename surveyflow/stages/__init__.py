"""Processing stages: structure parsing, response ingestion, flow classification, mapping."""
