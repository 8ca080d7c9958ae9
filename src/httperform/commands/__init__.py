"""Built-in CLI sub-commands for httperform.

* :mod:`~httperform.commands.request` -- perform one HTTP request.
* :mod:`~httperform.commands.cache` -- inspect and clear the response cache.
* :mod:`~httperform.commands.config` -- view and modify global settings.

``request`` is a plain callback registered on the root app; ``cache`` and
``config`` export :class:`typer.Typer` sub-applications.
"""
