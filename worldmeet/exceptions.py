class WorldmeetError(Exception):
    """Base class for errors raised by worldmeet"""


class MissingAttributesError(WorldmeetError):
    """Display name or region was not supplied before joining"""
