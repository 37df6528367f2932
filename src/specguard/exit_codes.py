"""Numeric process exit codes used by the ``specguard`` CLI and test integration.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specguard.exceptions.SpecguardError` subclass.
CI scripts can inspect the exit code to tell a broken contract apart from
insufficient API coverage without parsing stderr.

Example::

    $ specguard coverage openapi.yaml --events .specguard-events --minimum 80
    $ echo $?
    2   # EXIT_COVERAGE_BELOW_MINIMUM -- not enough of the contract was exercised
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_COVERAGE_BELOW_MINIMUM = 2
"""API coverage is below the configured ``minimum_coverage``."""

EXIT_INVALID_USAGE = 3
"""The command was invoked with invalid arguments or configuration."""

EXIT_VALIDATION_FAILURE = 4
"""A request or response did not conform to the contract."""

EXIT_DOCUMENT_ERROR = 7
"""The contract document could not be loaded, parsed, or resolved."""
