"""
Error classes for snapguard.

The calculators never raise. Errors only come from configuration, from the
snapshot store collaborator, and from entry edits coming in through a form.
"""


class ConfigError(Exception):
    """
    Configuration error while building an engine or loading a layout file.

    **Common Causes:**
    - Unknown keys in a layout mapping
    - Empty or non-string field paths
    - Unknown layout preset names
    - Attaching an orchestrator that has no event bus

    **Example Usage:**
        ```python
        from snapguard.core.errors import ConfigError
        from snapguard.core.config_loader import load_config

        try:
            config = load_config({"layout": {"not_a_field": "x"}})
        except ConfigError as e:
            print(f"Configuration error: {e}")
        ```
    """

    pass


class StoreError(Exception):
    """
    Raised by a snapshot store when a fetch or persist fails.

    The orchestrator catches it at its boundary and turns it into an error
    notice; nothing is written when it is raised.
    """

    pass


class EntryValidationError(ValueError):
    """Raised when an entry edit carries a blank name or invalid numbers."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)
