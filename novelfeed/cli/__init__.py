"""Command-line interface for novelfeed.

``python -m novelfeed.cli <command>``:

- ``serve``  -- run the HTTP API under uvicorn.
- ``sync``   -- run an incremental sync of one novel (or one volume) in the
  foreground, printing progress.
- ``top``    -- fetch a ranking page and print its entries.
- ``wenku``  -- fetch a library page and print its entries.
- ``status`` -- list the novels stored in the local database.

Components are built the same way the web app builds them
(``novelfeed.main._build_all``); heavy imports are deferred into
:func:`novelfeed.cli.commands.main` so ``--help`` stays fast.
"""
