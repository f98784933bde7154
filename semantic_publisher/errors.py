"""Exception taxonomy for analysis, export and synchronization failures."""


class PublisherError(Exception):
    """Base class for all semantic publisher errors."""


class ConfigurationError(PublisherError, ValueError):
    """Integration disabled, site path missing/invalid, or no space mappings."""


class NotFoundError(PublisherError, LookupError):
    """Unknown workspace, space, page or mapping."""


class RenderError(PublisherError):
    """A page's structured content could not be rendered to file content."""

    def __init__(self, page_id: str, message: str):
        self.page_id = page_id
        super().__init__(f"Failed to render page {page_id}: {message}")


class CycleDetected(PublisherError):
    """A page was reached again while still on the current processing path.

    Only ever logged; the page is skipped and not counted as a failure.
    """

    def __init__(self, page_id: str, path: list[str]):
        self.page_id = page_id
        self.path = list(path)
        chain = " -> ".join([*self.path, page_id])
        super().__init__(f"Circular reference detected: {chain}")


class SyncInProgressError(PublisherError):
    """A sync run is already executing for the workspace."""

    def __init__(self, workspace_id: str):
        self.workspace_id = workspace_id
        super().__init__(f"Sync already in progress for workspace {workspace_id}")
