"""Durable Postgres-backed job queues and the worker pool that drains them."""
