"""Allow ``python -m bilbo.cli`` to run the ingestion CLI."""

from bilbo.cli.ingest import main

main()
