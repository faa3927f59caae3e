"""Allow ``python -m rag_feeder.cli`` execution."""

from rag_feeder.cli.feeder import main

main()
