"""Adapters for the embedding service, vector index, relational store and calendar provider."""
