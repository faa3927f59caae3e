"""Command-line tools for rag-feeder.

- ``python -m rag_feeder.cli`` (or ``rag-feeder``) -- ingest text files or
  page images, poll document status, search, chat, reprocess and delete
  without running the HTTP server.
"""
