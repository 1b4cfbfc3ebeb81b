"""
Core business logic for the video showcase.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
boto3 or requests. Backends plug in through the protocols declared in
the store module, so the store can be tested with in-memory fakes.
"""
