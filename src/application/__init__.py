"""Application layer: turn pipeline, authorization orchestration and settings."""
