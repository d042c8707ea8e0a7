"""Fatal failures of a harvest and publish run."""


class HarvestError(Exception):
    """Base class for failures that abort a run."""


class SanityCheckError(HarvestError):
    """Too few events were harvested for the requested window."""


class ValidationError(HarvestError):
    """The encoded calendar does not represent the harvested events."""
