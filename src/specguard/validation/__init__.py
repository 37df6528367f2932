"""Request and response validation.

The public entry points are
:meth:`~specguard.definition.document.Document.validate_request` and
:meth:`~specguard.definition.document.Document.validate_response`; the
modules here implement the pipeline behind them.
"""
