"""File migration definitions. The name -> migration lookup lives in
:mod:`repo_migrations.registry`."""
