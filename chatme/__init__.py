"""Retrieval-augmented chat over a knowledge base of web pages."""
